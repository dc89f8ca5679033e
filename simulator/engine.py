"""
Incident Simulation Engine
==========================
Manufactures incidents and events against the facility's resources so
the status API has something to report.

PURPOSE:
- Generate incidents on a random, available resource type
- Advance incidents through their resolution lifecycle
- Emit one Event per resource whenever its status flips
- Bound the history of ended incidents

LIFECYCLE:
    PENDING ──(start reached)──▶ UNRESOLVED ──(end passed, 90%)──▶ COMPLETED
                                      │
                                      └──(end passed, 10%)──▶ EXTENDED ──(end passed)──▶ COMPLETED

A sweep advances an incident by at most one transition.
"""

from __future__ import annotations

import uuid
import random
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set

from datastore import FacilityStatusRepository
from schema import (
    Facility,
    Resource,
    Incident,
    Event,
    StatusType,
    IncidentType,
    ResolutionType,
    ResourceType,
    incident_uri,
    event_uri,
)
from .availability import AvailabilityTracker

logger = logging.getLogger("facility.simulator")

ONE_DAY = timedelta(days=1)
EXTENSION = timedelta(hours=1)
MAX_UNPLANNED_HOURS = 10
MAX_PLANNED_LEAD_HOURS = 24

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SimulationError(Exception):
    """Raised when the repository cannot support a simulation step."""
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_more_than_one_day_old(value: datetime, now: datetime) -> bool:
    return value < now - ONE_DAY


def is_past_end_time(incident: Incident, now: datetime) -> bool:
    """
    True once the scheduled end has passed. An incident without an end
    counts as past end once it has not been touched for a day.
    """
    if incident.end is None:
        return is_more_than_one_day_old(incident.last_modified, now)
    return now > incident.end


def is_past_start_time(incident: Incident, now: datetime) -> bool:
    return incident.start is None or now >= incident.start


class IncidentSimulator:
    """
    The incident lifecycle engine.

    Every public operation is one logical unit of work over the
    repository; the scheduler calls them on independent timers.
    """

    def __init__(
        self,
        repository: FacilityStatusRepository,
        tracker: Optional[AvailabilityTracker] = None,
        root: str = "",
        history_size: int = 20,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        incident_probability: float = 0.10,
        unplanned_probability: float = 0.90,
        completion_probability: float = 0.90,
    ):
        self._repository = repository
        self._tracker = tracker or AvailabilityTracker()
        self._root = root
        self._history_size = max(0, history_size)
        self._rng = rng or random.Random()
        self._clock = clock or utc_now
        self._incident_probability = incident_probability
        self._unplanned_probability = unplanned_probability
        self._completion_probability = completion_probability

    @property
    def tracker(self) -> AvailabilityTracker:
        return self._tracker

    @property
    def history_size(self) -> int:
        return self._history_size

    def _facility(self) -> Facility:
        facility = self._repository.find_one_facility()
        if facility is None:
            raise SimulationError("repository holds no facility")
        return facility

    def _resources_of(self, incident: Incident) -> List[Resource]:
        resources = []
        for uri in sorted(incident.resource_uris):
            resource = self._repository.find_resource_by_href(uri)
            if resource is None:
                logger.debug(f"Incident {incident.id}: resource {uri} no longer resolves, skipping")
                continue
            resources.append(resource)
        return resources

    # ═══════════════════════════════════════════════════════════════════════
    # Startup
    # ═══════════════════════════════════════════════════════════════════════

    def bootstrap(self) -> None:
        """Prune, reset availability, announce startup, seed a planned incident."""
        logger.debug("Bootstrapping simulation state")
        self.prune_history()

        self._tracker.reset(self._repository.find_all_resources())
        self.create_startup_incident()

        resource_type = self._tracker.pick_available()
        if resource_type is None:
            logger.info("No resource type available for the startup planned incident")
            return

        start = self._clock() + timedelta(hours=int(MAX_PLANNED_LEAD_HOURS * self._rng.random()))
        end = start + timedelta(hours=int(MAX_UNPLANNED_HOURS * self._rng.random()))
        self.create_incident(IncidentType.PLANNED, resource_type, start, end)
        self._tracker.mark_in_use(resource_type)

    def create_startup_incident(self) -> Incident:
        """A completed incident marking every resource UP."""
        now = self._clock()
        facility = self._facility()

        incident_id = str(uuid.uuid4())
        incident = Incident(
            id=incident_id,
            type=IncidentType.UNPLANNED,
            status=StatusType.UP,
            resolution=ResolutionType.COMPLETED,
            last_modified=now,
            start=now,
            end=now,
            short_name="Startup",
            name="System startup",
            description="The system has been started.",
            self_uri=incident_uri(self._root, incident_id),
        )
        facility.incident_uris.add(incident.self_uri)
        facility.last_modified = now

        resources = self._repository.find_all_resources()
        incident.resource_uris.update(r.self_uri for r in resources)
        self._repository.save(incident)
        try:
            for r in resources:
                self._flip_resource(facility, incident, r, StatusType.UP, now)
        finally:
            self._repository.save(facility)
            self._repository.save(incident)

        # Every resource is UP now, so types left in use by reset() are freed
        for resource_type in {r.type for r in resources}:
            self._tracker.release(resource_type)

        logger.info(f"Startup incident {incident.id} marked {len(resources)} resources up")
        return incident

    # ═══════════════════════════════════════════════════════════════════════
    # Generation
    # ═══════════════════════════════════════════════════════════════════════

    def generate_incident(self) -> Optional[Incident]:
        """
        Possibly create an incident on an available resource type.

        10% chance per call; of those, 90% start now (unplanned) and
        10% are scheduled maintenance within the next day (planned).
        """
        if self._rng.random() >= self._incident_probability:
            return None

        resource_type = self._tracker.pick_available()
        if resource_type is None:
            logger.debug("No resource types available, skipping incident generation")
            return None

        now = self._clock()
        if self._rng.random() < self._unplanned_probability:
            end = now + timedelta(hours=int(MAX_UNPLANNED_HOURS * self._rng.random()))
            incident = self.create_incident(IncidentType.UNPLANNED, resource_type, now, end)
        else:
            start = now + timedelta(hours=int(MAX_PLANNED_LEAD_HOURS * self._rng.random()))
            end = start + timedelta(hours=int(MAX_UNPLANNED_HOURS * self._rng.random()))
            incident = self.create_incident(IncidentType.PLANNED, resource_type, start, end)

        self._tracker.mark_in_use(resource_type)
        return incident

    def create_incident(
        self,
        type: IncidentType,
        resource_type: ResourceType,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> Incident:
        """Create an incident against every resource of `resource_type`."""
        now = self._clock()
        facility = self._facility()

        incident_id = str(uuid.uuid4())
        incident = Incident(
            id=incident_id,
            type=type,
            status=StatusType.DOWN,
            last_modified=now,
            start=start,
            end=end,
            short_name=resource_type.value,
            name=f"{type.value} outage on {resource_type.value} resources",
            description=f"Auto-generated incident of type {type.value}",
            resource_type=resource_type,
            self_uri=incident_uri(self._root, incident_id),
        )
        facility.incident_uris.add(incident.self_uri)
        facility.last_modified = now

        resources = [r for r in self._repository.find_all_resources() if r.type == resource_type]
        incident.resource_uris.update(r.self_uri for r in resources)

        if type == IncidentType.UNPLANNED:
            incident.resolution = ResolutionType.UNRESOLVED
        else:
            # Events wait until the incident leaves PENDING
            incident.resolution = ResolutionType.PENDING

        self._repository.save(incident)
        try:
            if type == IncidentType.UNPLANNED:
                for r in resources:
                    self._flip_resource(facility, incident, r, StatusType.DOWN, now)
        finally:
            # Publish whatever events were stored, even on a partial failure
            self._repository.save(facility)
            self._repository.save(incident)

        logger.info(
            f"Created {type.value} incident {incident.id} on {resource_type.value} "
            f"({len(resources)} resources, {incident.resolution.value})"
        )
        return incident

    # ═══════════════════════════════════════════════════════════════════════
    # Lifecycle transitions
    # ═══════════════════════════════════════════════════════════════════════

    def transition_incidents(self) -> Dict[str, int]:
        """
        One sweep over all open incidents.

        Returns a count of transitions made, keyed by target resolution.
        """
        now = self._clock()
        counts = {r.value: 0 for r in (ResolutionType.UNRESOLVED, ResolutionType.EXTENDED, ResolutionType.COMPLETED)}

        incidents = [
            i for i in self._repository.find_all_incidents()
            if i.resolution != ResolutionType.COMPLETED
        ]
        if not incidents:
            return counts

        facility = self._facility()
        # One draw per sweep decides completion vs extension
        draw = self._rng.random()

        try:
            for incident in incidents:
                logger.debug(f"Processing incident {incident.id}: {incident.resolution.value}")

                if incident.resolution == ResolutionType.PENDING:
                    if is_past_start_time(incident, now):
                        self.transition_to_unresolved(facility, incident, now)
                        counts[ResolutionType.UNRESOLVED.value] += 1

                elif incident.resolution == ResolutionType.UNRESOLVED:
                    if is_past_end_time(incident, now):
                        if draw < self._completion_probability:
                            self.transition_to_completed(facility, incident, now)
                            counts[ResolutionType.COMPLETED.value] += 1
                        else:
                            self.transition_to_extended(incident, now)
                            counts[ResolutionType.EXTENDED.value] += 1

                elif incident.resolution == ResolutionType.EXTENDED:
                    if is_past_end_time(incident, now):
                        self.transition_to_completed(facility, incident, now)
                        counts[ResolutionType.COMPLETED.value] += 1
        finally:
            # An aborted sweep still publishes the events it already stored
            self._repository.save(facility)
        return counts

    def transition_to_unresolved(self, facility: Facility, incident: Incident, now: datetime) -> None:
        """Start a pending incident: its resources take the incident's status."""
        for r in self._resources_of(incident):
            self._flip_resource(facility, incident, r, incident.status, now)

        incident.last_modified = now
        incident.resolution = ResolutionType.UNRESOLVED
        self._repository.save(incident)
        logger.info(f"Incident {incident.id}: pending -> unresolved")

    def transition_to_extended(self, incident: Incident, now: datetime) -> None:
        incident.end = now + EXTENSION
        incident.resolution = ResolutionType.EXTENDED
        incident.last_modified = now
        self._repository.save(incident)
        logger.info(f"Incident {incident.id}: unresolved -> extended until {incident.end.isoformat()}")

    def transition_to_completed(self, facility: Facility, incident: Incident, now: datetime) -> None:
        """Bring every impacted resource back UP and free its type."""
        previous = incident.resolution
        resources = self._resources_of(incident)
        for r in resources:
            self._flip_resource(facility, incident, r, StatusType.UP, now)

        incident.last_modified = now
        incident.resolution = ResolutionType.COMPLETED
        self._repository.save(incident)

        released: Set[ResourceType] = {r.type for r in resources}
        if incident.resource_type is not None:
            released.add(incident.resource_type)
        for resource_type in released:
            self._tracker.release(resource_type)

        logger.info(f"Incident {incident.id}: {previous.value} -> completed")

    # ═══════════════════════════════════════════════════════════════════════
    # Events
    # ═══════════════════════════════════════════════════════════════════════

    def _flip_resource(
        self,
        facility: Facility,
        incident: Incident,
        resource: Resource,
        status: StatusType,
        now: datetime,
    ) -> Event:
        """Set the resource status and record it as a linked Event."""
        event = Event(
            id=str(uuid.uuid4()),
            status=status,
            occurred_at=now,
            last_modified=now,
            name=f"{resource.short_name} is {status.value}",
            short_name=resource.short_name,
            description=f"{status.value.capitalize()} event for resource {resource.id}",
        )

        resource.current_status = status
        resource.last_modified = now

        self.link_event(facility, incident, event, resource)

        self._repository.save(event)
        self._repository.save(resource)
        return event

    def link_event(self, facility: Facility, incident: Incident, event: Event, resource: Resource) -> None:
        """Cross-reference a new event with its incident, resource and facility."""
        event.self_uri = event_uri(self._root, event.id)
        event.resource_uri = resource.self_uri
        event.incident_uri = incident.self_uri

        # A resource is impacted by the latest event only
        resource.impacted_by_uri = event.self_uri

        incident.event_uris.add(event.self_uri)
        facility.event_uris.add(event.self_uri)
        facility.last_modified = event.last_modified

    # ═══════════════════════════════════════════════════════════════════════
    # History pruning
    # ═══════════════════════════════════════════════════════════════════════

    def prune_history(self) -> int:
        """
        Delete ended incidents beyond the newest `history_size`, with
        their events. Open incidents (no end) are never touched.

        Returns the number of incidents deleted.
        """
        now = self._clock()
        ended = [i for i in self._repository.find_all_incidents() if i.end is not None and i.end < now]

        # Newest start first; a missing start sorts as newest
        ended.sort(key=lambda i: (i.start is None, i.start or _EPOCH), reverse=True)

        excess = ended[self._history_size:]
        if not excess:
            return 0

        facility = self._repository.find_one_facility()
        deleted_events: Set[str] = set()

        for incident in excess:
            for uri in incident.event_uris:
                event = self._repository.find_event_by_href(uri)
                if event is not None:
                    self._repository.delete(event)
                deleted_events.add(uri)
                if facility is not None:
                    facility.event_uris.discard(uri)

            self._repository.delete(incident)
            if facility is not None:
                facility.incident_uris.discard(incident.self_uri)
            logger.debug(f"Pruned incident {incident.id} with {len(incident.event_uris)} events")

        for r in self._repository.find_all_resources():
            if r.impacted_by_uri in deleted_events:
                r.impacted_by_uri = None
                self._repository.save(r)

        if facility is not None:
            facility.last_modified = now
            self._repository.save(facility)

        logger.info(f"Pruned {len(excess)} ended incidents (keeping {self._history_size})")
        return len(excess)
