"""
Facility Status Schema
Entities, enumerations and URI helpers.
"""

from .models import (
    Facility,
    Resource,
    Incident,
    Event,
    StatusType,
    IncidentType,
    ResolutionType,
    ResourceType,
)
from .links import facility_uri, resource_uri, incident_uri, event_uri, id_from_uri

__all__ = [
    "Facility",
    "Resource",
    "Incident",
    "Event",
    "StatusType",
    "IncidentType",
    "ResolutionType",
    "ResourceType",
    "facility_uri",
    "resource_uri",
    "incident_uri",
    "event_uri",
    "id_from_uri",
]
