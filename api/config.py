"""
Facility Status API Configuration
=================================
Environment-based configuration with sensible defaults.
All settings are read from environment variables at startup.

Usage:
    from api.config import settings
    print(settings.HISTORY_SIZE)
"""

import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

# Load .env BEFORE reading os.getenv
load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable application settings — loaded once at startup."""

    # ── Server ──────────────────────────────────────────────────
    APP_NAME: str = "IRI Facility Status API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8081
    SERVER_ROOT: str = "http://localhost:8081"  # Prefix for entity self URIs

    # ── Mock Data ───────────────────────────────────────────────
    FACILITY_DATA_PATH: str = ""  # Empty = bundled datastore/facility_status.json

    # ── Simulation ──────────────────────────────────────────────
    ENABLE_SIMULATION: bool = True
    HISTORY_SIZE: int = 20
    GENERATE_INTERVAL_SECONDS: float = 1800.0
    TRANSITION_INTERVAL_SECONDS: float = 30.0
    PRUNE_INTERVAL_SECONDS: float = 1800.0
    INCIDENT_PROBABILITY: float = 0.10
    UNPLANNED_PROBABILITY: float = 0.90
    COMPLETION_PROBABILITY: float = 0.90

    # ── CORS ────────────────────────────────────────────────────
    CORS_ORIGINS: List[str] = field(default_factory=lambda: ["*"])
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = field(default_factory=lambda: ["GET"])
    CORS_ALLOW_HEADERS: List[str] = field(default_factory=lambda: ["*"])

    # ── Logging ─────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"


def load_settings() -> Settings:
    """Load settings from environment variables with defaults."""
    cors_origins_raw = os.getenv("CORS_ORIGINS", "*")
    cors_origins = [o.strip() for o in cors_origins_raw.split(",")]

    return Settings(
        APP_NAME=os.getenv("APP_NAME", Settings.APP_NAME),
        APP_VERSION=os.getenv("APP_VERSION", Settings.APP_VERSION),
        ENVIRONMENT=os.getenv("ENVIRONMENT", Settings.ENVIRONMENT),
        DEBUG=os.getenv("DEBUG", "false").lower() == "true",
        API_HOST=os.getenv("API_HOST", Settings.API_HOST),
        API_PORT=int(os.getenv("API_PORT", str(Settings.API_PORT))),
        SERVER_ROOT=os.getenv("SERVER_ROOT", Settings.SERVER_ROOT),
        FACILITY_DATA_PATH=os.getenv("FACILITY_DATA_PATH", Settings.FACILITY_DATA_PATH),
        ENABLE_SIMULATION=os.getenv("ENABLE_SIMULATION", "true").lower() == "true",
        HISTORY_SIZE=int(os.getenv("HISTORY_SIZE", str(Settings.HISTORY_SIZE))),
        GENERATE_INTERVAL_SECONDS=float(
            os.getenv("GENERATE_INTERVAL_SECONDS", str(Settings.GENERATE_INTERVAL_SECONDS))
        ),
        TRANSITION_INTERVAL_SECONDS=float(
            os.getenv("TRANSITION_INTERVAL_SECONDS", str(Settings.TRANSITION_INTERVAL_SECONDS))
        ),
        PRUNE_INTERVAL_SECONDS=float(
            os.getenv("PRUNE_INTERVAL_SECONDS", str(Settings.PRUNE_INTERVAL_SECONDS))
        ),
        INCIDENT_PROBABILITY=float(os.getenv("INCIDENT_PROBABILITY", str(Settings.INCIDENT_PROBABILITY))),
        UNPLANNED_PROBABILITY=float(os.getenv("UNPLANNED_PROBABILITY", str(Settings.UNPLANNED_PROBABILITY))),
        COMPLETION_PROBABILITY=float(os.getenv("COMPLETION_PROBABILITY", str(Settings.COMPLETION_PROBABILITY))),
        CORS_ORIGINS=cors_origins,
        CORS_ALLOW_CREDENTIALS=os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true",
        LOG_LEVEL=os.getenv("LOG_LEVEL", Settings.LOG_LEVEL),
    )


# Singleton, loaded once
settings = load_settings()
