"""Tests for bounded incident history pruning."""

from datetime import timedelta

from schema import ResolutionType, Resource, event_uri
from simulator import IncidentSimulator

from conftest import ROOT, FixedRandom, store_incident


def _pruner(repository, tracker, clock, history_size):
    return IncidentSimulator(
        repository, tracker, root=ROOT, history_size=history_size, rng=FixedRandom(), clock=clock
    )


def test_keeps_the_newest_ended_incidents(repository, tracker, clock):
    now = clock.now
    oldest = store_incident(repository, "t-3h", now - timedelta(hours=3), now - timedelta(hours=3) + timedelta(minutes=10), event_count=2)
    store_incident(repository, "t-2h", now - timedelta(hours=2), now - timedelta(hours=2) + timedelta(minutes=10))
    store_incident(repository, "t-1h", now - timedelta(hours=1), now - timedelta(hours=1) + timedelta(minutes=10))

    deleted = _pruner(repository, tracker, clock, 2).prune_history()

    assert deleted == 1
    assert {i.id for i in repository.find_all_incidents()} == {"t-2h", "t-1h"}

    facility = repository.find_one_facility()
    assert oldest.self_uri not in facility.incident_uris
    for uri in oldest.event_uris:
        assert uri not in facility.event_uris
        assert repository.find_event_by_href(uri) is None
    assert facility.last_modified == now


def test_retained_ended_incidents_never_exceed_history_size(repository, tracker, clock):
    now = clock.now
    for n in range(7):
        store_incident(repository, f"inc-{n}", now - timedelta(hours=10 - n), now - timedelta(hours=9 - n))

    _pruner(repository, tracker, clock, 3).prune_history()

    ended = [i for i in repository.find_all_incidents() if i.end is not None and i.end < now]
    assert len(ended) == 3
    facility = repository.find_one_facility()
    assert facility.incident_uris == {i.self_uri for i in repository.find_all_incidents()}
    assert facility.event_uris == {e.self_uri for e in repository.find_all_events()}


def test_open_incidents_are_never_pruned(repository, tracker, clock):
    now = clock.now
    store_incident(
        repository, "open-stale", now - timedelta(days=10), None,
        resolution=ResolutionType.UNRESOLVED, last_modified=now - timedelta(days=5),
    )
    store_incident(repository, "ended", now - timedelta(hours=2), now - timedelta(hours=1))

    deleted = _pruner(repository, tracker, clock, 0).prune_history()

    assert deleted == 1
    assert [i.id for i in repository.find_all_incidents()] == ["open-stale"]


def test_future_end_is_not_ended(repository, tracker, clock):
    now = clock.now
    store_incident(repository, "running", now - timedelta(hours=5), now + timedelta(hours=1), resolution=ResolutionType.UNRESOLVED)
    store_incident(repository, "ended", now - timedelta(hours=2), now - timedelta(hours=1))

    _pruner(repository, tracker, clock, 0).prune_history()

    assert [i.id for i in repository.find_all_incidents()] == ["running"]


def test_missing_start_sorts_as_newest(repository, tracker, clock):
    now = clock.now
    store_incident(repository, "no-start", None, now - timedelta(hours=5))
    store_incident(repository, "recent", now - timedelta(hours=1), now - timedelta(minutes=30))

    _pruner(repository, tracker, clock, 1).prune_history()

    assert [i.id for i in repository.find_all_incidents()] == ["no-start"]


def test_pruning_twice_is_idempotent(repository, tracker, clock):
    now = clock.now
    for n in range(4):
        store_incident(repository, f"inc-{n}", now - timedelta(hours=5 - n), now - timedelta(hours=4 - n))
    pruner = _pruner(repository, tracker, clock, 2)

    assert pruner.prune_history() == 2
    remaining = repository.find_all_incidents()
    facility = repository.find_one_facility()

    assert pruner.prune_history() == 0
    assert repository.find_all_incidents() == remaining
    assert repository.find_one_facility() == facility


def test_unresolvable_event_reference_is_ignored(repository, tracker, clock):
    now = clock.now
    incident = store_incident(repository, "old", now - timedelta(hours=3), now - timedelta(hours=2))
    dangling = event_uri(ROOT, "already-gone")
    incident.event_uris.add(dangling)
    repository.save(incident)
    store_incident(repository, "new", now - timedelta(hours=1), now - timedelta(minutes=30))

    assert _pruner(repository, tracker, clock, 1).prune_history() == 1
    assert repository.find_incident_by_id("old") is None
    assert dangling not in repository.find_one_facility().event_uris


def test_resource_pointer_to_pruned_event_is_cleared(repository, tracker, clock, resources):
    now = clock.now
    incident = store_incident(repository, "old", now - timedelta(hours=3), now - timedelta(hours=2))
    resource: Resource = repository.find_resource_by_id(resources[0].id)
    resource.impacted_by_uri = next(iter(incident.event_uris))
    repository.save(resource)
    store_incident(repository, "new", now - timedelta(hours=1), now - timedelta(minutes=30))

    _pruner(repository, tracker, clock, 1).prune_history()

    assert repository.find_resource_by_id(resources[0].id).impacted_by_uri is None


def test_nothing_to_prune(repository, tracker, clock):
    facility = repository.find_one_facility()
    assert _pruner(repository, tracker, clock, 2).prune_history() == 0
    assert repository.find_one_facility() == facility
