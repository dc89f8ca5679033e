"""Shared fixtures for the facility status tests."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

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
    facility_uri,
    resource_uri,
    incident_uri,
    event_uri,
)
from simulator import AvailabilityTracker, IncidentSimulator

ROOT = "http://status.test"

# type -> number of resources seeded
SEEDED = {
    ResourceType.COMPUTE: 3,
    ResourceType.STORAGE: 2,
    ResourceType.WEBSITE: 1,
}


class FixedRandom:
    """
    Deterministic stand-in for random.Random.

    random() pops queued values and then keeps returning the last one;
    choice() always takes the first element.
    """

    def __init__(self, *values: float):
        self._values = list(values) or [0.5]

    def random(self) -> float:
        if len(self._values) > 1:
            return self._values.pop(0)
        return self._values[0]

    def choice(self, seq):
        return seq[0]


class Clock:
    """Settable clock for the simulator."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_resource(index: int, rtype: ResourceType, status: StatusType = StatusType.UP) -> Resource:
    rid = f"{rtype.value}-{index}"
    return Resource(
        id=rid,
        name=f"{rtype.value} node {index}",
        short_name=rid,
        type=rtype,
        current_status=status,
        last_modified=datetime(2025, 3, 3, tzinfo=timezone.utc),
        self_uri=resource_uri(ROOT, rid),
    )


def build_repository(resources: List[Resource]) -> FacilityStatusRepository:
    repository = FacilityStatusRepository()
    repository.save(Facility(
        id="facility-1",
        name="Test Facility",
        short_name="TF",
        last_modified=datetime(2025, 3, 3, tzinfo=timezone.utc),
        self_uri=facility_uri(ROOT),
        resource_uris={r.self_uri for r in resources},
    ))
    repository.save_all(resources)
    return repository


def store_incident(
    repository: FacilityStatusRepository,
    incident_id: str,
    start: Optional[datetime],
    end: Optional[datetime],
    resolution: ResolutionType = ResolutionType.COMPLETED,
    last_modified: Optional[datetime] = None,
    event_count: int = 1,
) -> Incident:
    """Store an incident, its events and the facility references directly."""
    facility = repository.find_one_facility()
    incident = Incident(
        id=incident_id,
        type=IncidentType.UNPLANNED,
        status=StatusType.DOWN,
        resolution=resolution,
        start=start,
        end=end,
        last_modified=last_modified or datetime.now(timezone.utc),
        self_uri=incident_uri(ROOT, incident_id),
    )
    for n in range(event_count):
        event = Event(
            id=f"{incident_id}-evt-{n}",
            status=StatusType.UP,
            occurred_at=incident.last_modified,
            last_modified=incident.last_modified,
            self_uri=event_uri(ROOT, f"{incident_id}-evt-{n}"),
            incident_uri=incident.self_uri,
        )
        incident.event_uris.add(event.self_uri)
        facility.event_uris.add(event.self_uri)
        repository.save(event)

    facility.incident_uris.add(incident.self_uri)
    repository.save(incident)
    repository.save(facility)
    return incident


@pytest.fixture
def resources() -> List[Resource]:
    seeded = []
    for rtype, count in SEEDED.items():
        seeded.extend(make_resource(i, rtype) for i in range(count))
    return seeded


@pytest.fixture
def repository(resources) -> FacilityStatusRepository:
    return build_repository(resources)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def tracker(resources) -> AvailabilityTracker:
    tracker = AvailabilityTracker(rng=FixedRandom())
    tracker.reset(resources)
    return tracker


@pytest.fixture
def simulator(repository, tracker, clock) -> IncidentSimulator:
    return IncidentSimulator(
        repository,
        tracker,
        root=ROOT,
        history_size=2,
        rng=FixedRandom(0.5),
        clock=clock,
    )
