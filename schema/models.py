"""
Facility Status Schema
======================
The status model served by the API and mutated by the simulator.

ENTITIES:
- Facility   (singleton, owns incident/event references)
- Resource   (grouped by ResourceType)
- Incident   (an outage affecting one resource type)
- Event      (a single UP/DOWN change on one resource)

Cross references are URIs, never object pointers, so every entity
can be copied in and out of the repository independently.
"""

from __future__ import annotations

from datetime import datetime
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Set
from enum import Enum


class StatusType(Enum):
    """The status of a resource."""
    UP = "up"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"


class IncidentType(Enum):
    """The type of incident."""
    PLANNED = "planned"
    UNPLANNED = "unplanned"
    RESERVATION = "reservation"


class ResolutionType(Enum):
    """The current state of the incident resolution."""
    UNRESOLVED = "unresolved"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXTENDED = "extended"
    PENDING = "pending"


class ResourceType(Enum):
    """The type of resource."""
    WEBSITE = "website"
    SERVICE = "service"
    COMPUTE = "compute"
    SYSTEM = "system"
    STORAGE = "storage"
    NETWORK = "network"
    UNKNOWN = "unknown"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Facility:
    """The facility being reported on."""
    id: str
    name: str
    short_name: str
    last_modified: datetime
    description: str = ""
    organization_name: str = ""
    self_uri: str = ""
    resource_uris: Set[str] = field(default_factory=set)
    incident_uris: Set[str] = field(default_factory=set)
    event_uris: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "description": self.description,
            "organization_name": self.organization_name,
            "last_modified": _iso(self.last_modified),
            "self_uri": self.self_uri,
            "resource_uris": sorted(self.resource_uris),
            "incident_uris": sorted(self.incident_uris),
            "event_uris": sorted(self.event_uris),
        }


@dataclass
class Resource:
    """A resource whose status is tracked."""
    id: str
    name: str
    short_name: str
    type: ResourceType
    current_status: StatusType
    last_modified: datetime
    description: str = ""
    group: Optional[str] = None
    self_uri: str = ""
    impacted_by_uri: Optional[str] = None  # Latest event touching this resource

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "description": self.description,
            "type": self.type.value,
            "group": self.group,
            "current_status": self.current_status.value,
            "last_modified": _iso(self.last_modified),
            "self_uri": self.self_uri,
            "impacted_by_uri": self.impacted_by_uri,
        }


@dataclass
class Incident:
    """
    An outage record affecting every resource of one type.

    `end` of None means the incident is still open.
    """
    id: str
    type: IncidentType
    status: StatusType
    last_modified: datetime
    resolution: ResolutionType = ResolutionType.PENDING
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    name: str = ""
    short_name: str = ""
    description: str = ""
    resource_type: Optional[ResourceType] = None
    self_uri: str = ""
    resource_uris: Set[str] = field(default_factory=set)
    event_uris: Set[str] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "description": self.description,
            "type": self.type.value,
            "status": self.status.value,
            "resolution": self.resolution.value,
            "resource_type": self.resource_type.value if self.resource_type else None,
            "start": _iso(self.start),
            "end": _iso(self.end),
            "last_modified": _iso(self.last_modified),
            "self_uri": self.self_uri,
            "resource_uris": sorted(self.resource_uris),
            "event_uris": sorted(self.event_uris),
        }


@dataclass
class Event:
    """A point-in-time status change on a single resource."""
    id: str
    status: StatusType
    occurred_at: datetime
    last_modified: datetime
    name: str = ""
    short_name: str = ""
    description: str = ""
    self_uri: str = ""
    resource_uri: Optional[str] = None
    incident_uri: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "description": self.description,
            "status": self.status.value,
            "occurred_at": _iso(self.occurred_at),
            "last_modified": _iso(self.last_modified),
            "self_uri": self.self_uri,
            "resource_uri": self.resource_uri,
            "incident_uri": self.incident_uri,
        }
