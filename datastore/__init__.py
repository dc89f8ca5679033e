"""
Facility Status Datastore
In-memory repository and seed data loader.
"""

from .repository import FacilityStatusRepository
from .loader import load_repository, FacilityDataError, DEFAULT_DATA_PATH

__all__ = ["FacilityStatusRepository", "load_repository", "FacilityDataError", "DEFAULT_DATA_PATH"]
