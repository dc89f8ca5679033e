"""
Facility Status Repository
==========================
In-memory store for facility, resource, incident and event entities.

Design:
- One master index keyed by entity id
- Thread-safe via a single lock
- Finds return copies; callers must save() to publish changes
- save() is visible to the next read immediately (no flush step)
"""

import copy
import logging
import threading
from typing import Dict, List, Optional, Type, TypeVar, Union

from schema import Facility, Resource, Incident, Event, id_from_uri

logger = logging.getLogger("facility.datastore")

Entity = Union[Facility, Resource, Incident, Event]
T = TypeVar("T", Facility, Resource, Incident, Event)


class FacilityStatusRepository:
    """
    Storage collaborator for the simulator and the API.

    Lookups that miss return None (or an empty list), never raise.
    """

    def __init__(self):
        self._objects: Dict[str, Entity] = {}
        self._lock = threading.Lock()

    # ── Writes ─────────────────────────────────────────────────

    def save(self, entity: T) -> T:
        """Insert or replace an entity."""
        with self._lock:
            self._objects[entity.id] = copy.deepcopy(entity)
        return entity

    def save_all(self, entities: List[Entity]) -> None:
        with self._lock:
            for entity in entities:
                self._objects[entity.id] = copy.deepcopy(entity)

    def delete(self, entity: Entity) -> None:
        """Remove an entity; a missing entity is ignored."""
        with self._lock:
            self._objects.pop(entity.id, None)

    def count(self) -> int:
        with self._lock:
            return len(self._objects)

    # ── Generic lookups ────────────────────────────────────────

    def _find_all(self, cls: Type[T]) -> List[T]:
        with self._lock:
            return [copy.deepcopy(o) for o in self._objects.values() if isinstance(o, cls)]

    def _find_by_id(self, cls: Type[T], entity_id: Optional[str]) -> Optional[T]:
        if not entity_id:
            return None
        with self._lock:
            obj = self._objects.get(entity_id)
            if isinstance(obj, cls):
                return copy.deepcopy(obj)
        return None

    def _find_by_href(self, cls: Type[T], href: Optional[str]) -> Optional[T]:
        return self._find_by_id(cls, id_from_uri(href))

    # ── Facility ───────────────────────────────────────────────

    def find_all_facilities(self) -> List[Facility]:
        return self._find_all(Facility)

    def find_one_facility(self) -> Optional[Facility]:
        facilities = self.find_all_facilities()
        return facilities[0] if facilities else None

    # ── Resources ──────────────────────────────────────────────

    def find_all_resources(self) -> List[Resource]:
        return self._find_all(Resource)

    def find_resource_by_id(self, resource_id: str) -> Optional[Resource]:
        return self._find_by_id(Resource, resource_id)

    def find_resource_by_href(self, href: str) -> Optional[Resource]:
        return self._find_by_href(Resource, href)

    # ── Incidents ──────────────────────────────────────────────

    def find_all_incidents(self) -> List[Incident]:
        return self._find_all(Incident)

    def find_incident_by_id(self, incident_id: str) -> Optional[Incident]:
        return self._find_by_id(Incident, incident_id)

    def find_incident_by_href(self, href: str) -> Optional[Incident]:
        return self._find_by_href(Incident, href)

    # ── Events ─────────────────────────────────────────────────

    def find_all_events(self) -> List[Event]:
        return self._find_all(Event)

    def find_event_by_id(self, event_id: str) -> Optional[Event]:
        return self._find_by_id(Event, event_id)

    def find_event_by_href(self, href: str) -> Optional[Event]:
        return self._find_by_href(Event, href)
