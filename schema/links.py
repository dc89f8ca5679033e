"""URI construction and parsing for status entities."""

from typing import Optional

STATUS_PREFIX = "/api/v1/status"

FACILITY_TEMPLATE = "{root}" + STATUS_PREFIX + "/facility"
RESOURCE_TEMPLATE = "{root}" + STATUS_PREFIX + "/resources/{id}"
INCIDENT_TEMPLATE = "{root}" + STATUS_PREFIX + "/incidents/{id}"
EVENT_TEMPLATE = "{root}" + STATUS_PREFIX + "/events/{id}"


def _root(root: str) -> str:
    return (root or "").rstrip("/")


def facility_uri(root: str) -> str:
    return FACILITY_TEMPLATE.format(root=_root(root))


def resource_uri(root: str, resource_id: str) -> str:
    return RESOURCE_TEMPLATE.format(root=_root(root), id=resource_id)


def incident_uri(root: str, incident_id: str) -> str:
    return INCIDENT_TEMPLATE.format(root=_root(root), id=incident_id)


def event_uri(root: str, event_id: str) -> str:
    return EVENT_TEMPLATE.format(root=_root(root), id=event_id)


def id_from_uri(uri: Optional[str]) -> Optional[str]:
    """Last path segment of a URI, or None for an empty reference."""
    if not uri:
        return None
    tail = uri.rstrip("/").rsplit("/", 1)[-1]
    return tail or None
