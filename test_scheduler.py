"""Tests for the periodic simulation jobs."""

import asyncio

from simulator import SimulationScheduler


class FlakySimulator:
    """Generation fails on its first run only."""

    def __init__(self):
        self.generated = 0
        self.transitions = 0
        self.prunes = 0
        self._failed = False

    def generate_incident(self):
        if not self._failed:
            self._failed = True
            raise RuntimeError("storage unavailable")
        self.generated += 1

    def transition_incidents(self):
        self.transitions += 1
        return {}

    def prune_history(self):
        self.prunes += 1
        return 0


def _stats(scheduler, name):
    return next(s for s in scheduler.stats() if s["name"] == name)


def test_failed_run_is_recorded_not_raised():
    simulator = FlakySimulator()
    scheduler = SimulationScheduler(simulator)
    assert scheduler.run_once("generate") is False
    assert scheduler.run_once("generate") is True

    stats = _stats(scheduler, "generate")
    assert stats["runs"] == 2
    assert stats["failures"] == 1
    assert stats["last_error"] is None
    assert simulator.generated == 1


def test_jobs_keep_running_after_a_failure():
    simulator = FlakySimulator()

    async def scenario():
        scheduler = SimulationScheduler(
            simulator, generate_interval=0.01, transition_interval=0.01, prune_interval=0.01
        )
        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.2)
        await scheduler.stop()
        return scheduler

    scheduler = asyncio.run(scenario())

    assert not scheduler.running
    assert _stats(scheduler, "generate")["failures"] == 1
    assert simulator.generated >= 1
    assert simulator.transitions >= 1
    assert simulator.prunes >= 1


def test_jobs_wait_one_interval_before_first_run():
    simulator = FlakySimulator()

    async def scenario():
        scheduler = SimulationScheduler(
            simulator, generate_interval=60, transition_interval=60, prune_interval=60
        )
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()
        return scheduler

    scheduler = asyncio.run(scenario())

    assert all(s["runs"] == 0 for s in scheduler.stats())
    assert simulator.transitions == 0
