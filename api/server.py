"""
IRI Facility Status API Server
==============================
FastAPI backend serving the facility's resource status with:
- Structured logging with request correlation
- Request ID tracing (X-Request-ID)
- Response timing (X-Response-Time)
- Conditional GET (If-Modified-Since → 304)
- Background incident simulation with graceful shutdown
- Global error handling (no raw stack traces)
- Environment-based configuration

All endpoints are read-only. Incidents and events are produced by the
simulator running in the application lifespan.
"""

from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import List, Dict, Any, Optional, Iterable, TypeVar
from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI, HTTPException, Request, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from datastore import FacilityStatusRepository, load_repository
from simulator import AvailabilityTracker, IncidentSimulator, SimulationScheduler

from api.config import settings
from api.middleware import (
    RequestIDMiddleware,
    TimingMiddleware,
)

# ═══════════════════════════════════════════════════════════════════════════════
# STRUCTURED LOGGING
# ═══════════════════════════════════════════════════════════════════════════════

def _setup_logging():
    """Configure structured logging for the application."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(name)-24s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Silence noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

_setup_logging()
logger = logging.getLogger("facility.api")


# ═══════════════════════════════════════════════════════════════════════════════
# PYDANTIC MODELS (API Contracts)
# ═══════════════════════════════════════════════════════════════════════════════

class FacilityResponse(BaseModel):
    """The facility and its references."""
    id: str
    name: str
    short_name: str
    description: str
    organization_name: str
    last_modified: Optional[str]
    self_uri: str
    resource_uris: List[str]
    incident_uris: List[str]
    event_uris: List[str]


class ResourceResponse(BaseModel):
    """A resource and its current status."""
    id: str
    name: str
    short_name: str
    description: str
    type: str
    group: Optional[str]
    current_status: str
    last_modified: Optional[str]
    self_uri: str
    impacted_by_uri: Optional[str]


class IncidentResponse(BaseModel):
    """An incident and its lifecycle state."""
    id: str
    name: str
    short_name: str
    description: str
    type: str
    status: str
    resolution: str
    resource_type: Optional[str]
    start: Optional[str]
    end: Optional[str]
    last_modified: Optional[str]
    self_uri: str
    resource_uris: List[str]
    event_uris: List[str]


class EventResponse(BaseModel):
    """A single resource status change."""
    id: str
    name: str
    short_name: str
    description: str
    status: str
    occurred_at: Optional[str]
    last_modified: Optional[str]
    self_uri: str
    resource_uri: Optional[str]
    incident_uri: Optional[str]


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    simulation_running: bool


class SimulationStatus(BaseModel):
    """Simulator state: type availability and job bookkeeping."""
    enabled: bool
    running: bool
    history_size: int
    availability: Dict[str, bool]
    jobs: List[Dict[str, Any]]


# ═══════════════════════════════════════════════════════════════════════════════
# DISCOVERY: explicit route registry
# ═══════════════════════════════════════════════════════════════════════════════

STATUS_PREFIX = "/api/v1/status"

ROUTES: List[Dict[str, str]] = [
    {"id": "facility", "description": "The facility being reported on", "path": f"{STATUS_PREFIX}/facility"},
    {"id": "resources", "description": "Resources and their current status", "path": f"{STATUS_PREFIX}/resources"},
    {"id": "resource", "description": "A single resource", "path": f"{STATUS_PREFIX}/resources/{{resource_id}}"},
    {"id": "incidents", "description": "Planned and unplanned incidents", "path": f"{STATUS_PREFIX}/incidents"},
    {"id": "incident", "description": "A single incident", "path": f"{STATUS_PREFIX}/incidents/{{incident_id}}"},
    {"id": "events", "description": "Resource status change events", "path": f"{STATUS_PREFIX}/events"},
    {"id": "event", "description": "A single event", "path": f"{STATUS_PREFIX}/events/{{event_id}}"},
    {"id": "simulation", "description": "Incident simulator state", "path": "/api/v1/simulation/status"},
    {"id": "health", "description": "Service health", "path": "/health"},
]


# ═══════════════════════════════════════════════════════════════════════════════
# CONDITIONAL GET
# ═══════════════════════════════════════════════════════════════════════════════

def parse_if_modified_since(value: Optional[str]) -> Optional[datetime]:
    """Accepts an HTTP date or ISO 8601; anything unparseable is ignored."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def not_modified(requested: Optional[datetime], last_modified: Optional[datetime]) -> bool:
    """True when the entity has not changed since the requested time."""
    if requested is None or last_modified is None:
        return False
    # HTTP dates carry whole seconds only
    return last_modified.replace(microsecond=0) <= requested


T = TypeVar("T")


def modified_since(entities: Iterable[T], requested: Optional[datetime]) -> List[T]:
    """Entities changed after the requested time (all of them when None)."""
    return [e for e in entities if not not_modified(requested, getattr(e, "last_modified", None))]


def _last_modified_header(value: Optional[datetime]) -> Dict[str, str]:
    if value is None:
        return {}
    return {"Last-Modified": format_datetime(value.astimezone(timezone.utc), usegmt=True)}


# ═══════════════════════════════════════════════════════════════════════════════
# GLOBAL STATE: application-scoped singletons
# ═══════════════════════════════════════════════════════════════════════════════

_repository: Optional[FacilityStatusRepository] = None
_simulator: Optional[IncidentSimulator] = None
_scheduler: Optional[SimulationScheduler] = None
_startup_time: Optional[datetime] = None


def _require_repository() -> FacilityStatusRepository:
    if _repository is None:
        raise HTTPException(status_code=503, detail="Repository not initialized")
    return _repository


# ═══════════════════════════════════════════════════════════════════════════════
# LIFECYCLE: startup and shutdown
# ═══════════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
    1. Load the facility seed data
    2. Bootstrap the simulator (prune, startup incident, planned incident)
    3. Start the generate/transition/prune jobs

    Shutdown:
    1. Cancel the simulation jobs and wait for a clean exit
    """
    global _repository, _simulator, _scheduler, _startup_time

    _startup_time = datetime.now(timezone.utc)

    logger.info("=" * 60)
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info("=" * 60)

    _repository = load_repository(settings.FACILITY_DATA_PATH or None, root=settings.SERVER_ROOT)
    logger.info(f"  Repository ................ ready ({_repository.count()} objects)")

    _simulator = IncidentSimulator(
        _repository,
        AvailabilityTracker(),
        root=settings.SERVER_ROOT,
        history_size=settings.HISTORY_SIZE,
        incident_probability=settings.INCIDENT_PROBABILITY,
        unplanned_probability=settings.UNPLANNED_PROBABILITY,
        completion_probability=settings.COMPLETION_PROBABILITY,
    )
    _scheduler = SimulationScheduler(
        _simulator,
        generate_interval=settings.GENERATE_INTERVAL_SECONDS,
        transition_interval=settings.TRANSITION_INTERVAL_SECONDS,
        prune_interval=settings.PRUNE_INTERVAL_SECONDS,
    )

    if settings.ENABLE_SIMULATION:
        _simulator.bootstrap()
        _scheduler.start()
        logger.info("  Incident Simulator ........ running")
    else:
        logger.info("  Incident Simulator ........ disabled")

    logger.info("=" * 60)
    logger.info("Server ready — accepting requests")

    yield

    logger.info("Initiating graceful shutdown...")
    await _scheduler.stop()
    logger.info("Shutdown complete.")


# ═══════════════════════════════════════════════════════════════════════════════
# APP SETUP
# ═══════════════════════════════════════════════════════════════════════════════

app = FastAPI(
    title="IRI Facility Status API",
    description=(
        "Reference implementation of the facility status API.\n\n"
        "Reports resources, incidents and events for a research facility. "
        "Incidents are generated by a background simulator.\n\n"
        "Every response includes `X-Request-ID` and `X-Response-Time` headers."
    ),
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Middleware stack (last added runs outermost) ──
app.add_middleware(TimingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
    expose_headers=["X-Request-ID", "X-Response-Time", "Last-Modified"],
)


# ═══════════════════════════════════════════════════════════════════════════════
# GLOBAL EXCEPTION HANDLERS
# ═══════════════════════════════════════════════════════════════════════════════

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Return structured JSON for all HTTP errors."""
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail if isinstance(exc.detail, str) else "error",
            "status_code": exc.status_code,
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions. The traceback stays in the server log."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        f"[{request_id}] Unhandled exception on {request.method} {request.url.path}: "
        f"{type(exc).__name__}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "status_code": 500,
            "request_id": request_id,
        },
    )


# ═══════════════════════════════════════════════════════════════════════════════
# DISCOVERY & HEALTH
# ═══════════════════════════════════════════════════════════════════════════════

@app.get("/", tags=["Discovery"])
async def discovery():
    """List the available endpoints."""
    return {"routes": ROUTES}


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health():
    uptime = (datetime.now(timezone.utc) - _startup_time).total_seconds() if _startup_time else 0.0
    return HealthResponse(
        status="ok" if _repository is not None else "starting",
        version=settings.APP_VERSION,
        uptime_seconds=round(uptime, 1),
        simulation_running=bool(_scheduler and _scheduler.running),
    )


@app.get("/api/v1/simulation/status", response_model=SimulationStatus, tags=["System"])
async def simulation_status():
    """Resource type availability and scheduled job statistics."""
    if _simulator is None or _scheduler is None:
        raise HTTPException(status_code=503, detail="Simulator not initialized")
    return SimulationStatus(
        enabled=settings.ENABLE_SIMULATION,
        running=_scheduler.running,
        history_size=_simulator.history_size,
        availability=_simulator.tracker.snapshot(),
        jobs=_scheduler.stats(),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# STATUS ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

@app.get(f"{STATUS_PREFIX}/facility", tags=["Status"])
async def get_facility(if_modified_since: Optional[str] = Header(default=None)):
    """The facility with references to its resources, incidents and events."""
    facility = _require_repository().find_one_facility()
    if facility is None:
        raise HTTPException(status_code=404, detail="Facility not found")
    if not_modified(parse_if_modified_since(if_modified_since), facility.last_modified):
        return Response(status_code=304)
    return JSONResponse(
        content=FacilityResponse(**facility.to_dict()).model_dump(),
        headers=_last_modified_header(facility.last_modified),
    )


@app.get(f"{STATUS_PREFIX}/resources", tags=["Status"])
async def list_resources(if_modified_since: Optional[str] = Header(default=None)):
    """All resources; with If-Modified-Since, only those changed since."""
    resources = modified_since(
        _require_repository().find_all_resources(),
        parse_if_modified_since(if_modified_since),
    )
    resources.sort(key=lambda r: r.name)
    return {"resources": [ResourceResponse(**r.to_dict()).model_dump() for r in resources]}


@app.get(f"{STATUS_PREFIX}/resources/{{resource_id}}", tags=["Status"])
async def get_resource(resource_id: str, if_modified_since: Optional[str] = Header(default=None)):
    resource = _require_repository().find_resource_by_id(resource_id)
    if resource is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    if not_modified(parse_if_modified_since(if_modified_since), resource.last_modified):
        return Response(status_code=304)
    return JSONResponse(
        content=ResourceResponse(**resource.to_dict()).model_dump(),
        headers=_last_modified_header(resource.last_modified),
    )


@app.get(f"{STATUS_PREFIX}/incidents", tags=["Status"])
async def list_incidents(if_modified_since: Optional[str] = Header(default=None)):
    """All incidents, most recently modified first."""
    incidents = modified_since(
        _require_repository().find_all_incidents(),
        parse_if_modified_since(if_modified_since),
    )
    incidents.sort(key=lambda i: i.last_modified, reverse=True)
    return {"incidents": [IncidentResponse(**i.to_dict()).model_dump() for i in incidents]}


@app.get(f"{STATUS_PREFIX}/incidents/{{incident_id}}", tags=["Status"])
async def get_incident(incident_id: str, if_modified_since: Optional[str] = Header(default=None)):
    incident = _require_repository().find_incident_by_id(incident_id)
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")
    if not_modified(parse_if_modified_since(if_modified_since), incident.last_modified):
        return Response(status_code=304)
    return JSONResponse(
        content=IncidentResponse(**incident.to_dict()).model_dump(),
        headers=_last_modified_header(incident.last_modified),
    )


@app.get(f"{STATUS_PREFIX}/events", tags=["Status"])
async def list_events(if_modified_since: Optional[str] = Header(default=None)):
    """All events, most recent first."""
    events = modified_since(
        _require_repository().find_all_events(),
        parse_if_modified_since(if_modified_since),
    )
    events.sort(key=lambda e: e.occurred_at, reverse=True)
    return {"events": [EventResponse(**e.to_dict()).model_dump() for e in events]}


@app.get(f"{STATUS_PREFIX}/events/{{event_id}}", tags=["Status"])
async def get_event(event_id: str, if_modified_since: Optional[str] = Header(default=None)):
    event = _require_repository().find_event_by_id(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    if not_modified(parse_if_modified_since(if_modified_since), event.last_modified):
        return Response(status_code=304)
    return JSONResponse(
        content=EventResponse(**event.to_dict()).model_dump(),
        headers=_last_modified_header(event.last_modified),
    )
