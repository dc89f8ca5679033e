"""
Facility Data Loader
====================
Builds a repository from the JSON seed file describing the facility
and its resources. Self URIs are derived from the server root, so the
seed file only carries ids.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from schema import (
    Facility,
    Resource,
    ResourceType,
    StatusType,
    facility_uri,
    resource_uri,
)
from .repository import FacilityStatusRepository

logger = logging.getLogger("facility.datastore")

DEFAULT_DATA_PATH = Path(__file__).parent / "facility_status.json"


class FacilityDataError(Exception):
    """Raised when the seed file is missing or malformed."""
    pass


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        raise FacilityDataError("missing last_modified timestamp")
    return datetime.fromisoformat(value)


def _build_resource(record: Dict[str, Any], root: str) -> Resource:
    try:
        return Resource(
            id=record["id"],
            name=record["name"],
            short_name=record.get("short_name", record["name"]),
            description=record.get("description", ""),
            type=ResourceType(record.get("type", "unknown")),
            group=record.get("group"),
            current_status=StatusType(record.get("current_status", "unknown")),
            last_modified=_parse_time(record.get("last_modified")),
            self_uri=resource_uri(root, record["id"]),
        )
    except (KeyError, ValueError) as e:
        raise FacilityDataError(f"invalid resource record {record.get('id', '?')}: {e}") from e


def load_repository(path: Optional[str] = None, root: str = "") -> FacilityStatusRepository:
    """Load the seed file into a new repository."""
    data_path = Path(path) if path else DEFAULT_DATA_PATH
    if not data_path.exists():
        raise FacilityDataError(f"facility data file not found: {data_path}")

    try:
        with open(data_path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise FacilityDataError(f"facility data file is not valid JSON: {e}") from e

    record = data.get("facility")
    if not record:
        raise FacilityDataError("facility data file has no facility entry")

    resources = [_build_resource(r, root) for r in data.get("resources", [])]

    try:
        facility = Facility(
            id=record["id"],
            name=record["name"],
            short_name=record.get("short_name", record["name"]),
            description=record.get("description", ""),
            organization_name=record.get("organization_name", ""),
            last_modified=_parse_time(record.get("last_modified")),
            self_uri=facility_uri(root),
            resource_uris={r.self_uri for r in resources},
        )
    except KeyError as e:
        raise FacilityDataError(f"invalid facility record: missing {e}") from e

    repository = FacilityStatusRepository()
    repository.save(facility)
    repository.save_all(resources)

    logger.info(f"Loaded facility {facility.short_name} with {len(resources)} resources from {data_path}")
    return repository
