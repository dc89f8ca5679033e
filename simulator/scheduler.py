"""
Simulation Scheduler
====================
Runs the simulator's three jobs on independent fixed intervals as
asyncio background tasks:

1. generate   — maybe create a new incident
2. transition — advance open incidents through their lifecycle
3. prune      — bound the history of ended incidents

Production hardening:
- A failing run is logged and the loop waits for the next interval
- Cancellation stops every loop cleanly
- No retries; a missed run is superseded by the next one
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .engine import IncidentSimulator, utc_now

logger = logging.getLogger("facility.scheduler")


@dataclass
class JobStats:
    """Run bookkeeping for one scheduled job."""
    name: str
    interval_seconds: float
    runs: int = 0
    failures: int = 0
    last_run: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "failures": self.failures,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_error": self.last_error,
        }


@dataclass
class _Job:
    stats: JobStats
    func: Callable[[], Any]
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class SimulationScheduler:
    """Owns the periodic tasks driving an IncidentSimulator."""

    def __init__(
        self,
        simulator: IncidentSimulator,
        generate_interval: float = 1800.0,
        transition_interval: float = 30.0,
        prune_interval: float = 1800.0,
    ):
        self._simulator = simulator
        self._jobs: Dict[str, _Job] = {
            "generate": _Job(JobStats("generate", generate_interval), simulator.generate_incident),
            "transition": _Job(JobStats("transition", transition_interval), simulator.transition_incidents),
            "prune": _Job(JobStats("prune", prune_interval), simulator.prune_history),
        }
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def stats(self) -> List[Dict[str, Any]]:
        return [job.stats.to_dict() for job in self._jobs.values()]

    def run_once(self, name: str) -> bool:
        """Run the named job a single time. Returns False if it raised."""
        job = self._jobs[name]
        stats = job.stats
        stats.last_run = utc_now()
        stats.runs += 1
        try:
            result = job.func()
        except Exception as e:
            stats.failures += 1
            stats.last_error = f"{type(e).__name__}: {e}"
            logger.error(f"Job {stats.name} failed (will run again in {stats.interval_seconds}s): {stats.last_error}")
            return False

        stats.last_error = None
        logger.debug(f"Job {stats.name} run {stats.runs}: {result}")
        return True

    async def _loop(self, name: str) -> None:
        interval = self._jobs[name].stats.interval_seconds
        logger.info(f"Job {name} scheduled every {interval}s")
        while self._running:
            try:
                await asyncio.sleep(interval)
                self.run_once(name)
            except asyncio.CancelledError:
                logger.info(f"Job {name} cancelled")
                break
        logger.info(f"Job {name} stopped")

    def start(self) -> None:
        """Start every job loop on the running event loop."""
        if self._running:
            return
        self._running = True
        for name, job in self._jobs.items():
            job.task = asyncio.create_task(self._loop(name), name=f"simulation-{name}")

    async def stop(self, timeout: float = 5.0) -> None:
        """Cancel every job loop and wait for it to exit."""
        self._running = False
        tasks = [job.task for job in self._jobs.values() if job.task and not job.task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await asyncio.wait_for(task, timeout=timeout)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        for job in self._jobs.values():
            job.task = None
