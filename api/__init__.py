"""
Facility Status API Layer — FastAPI Backend
"""

from .server import app
from .config import settings

__all__ = ["app", "settings"]
