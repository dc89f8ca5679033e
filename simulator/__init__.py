"""
Incident Simulation Engine
Generates, advances and prunes incidents so the status API is demoable.
"""

from .availability import AvailabilityTracker
from .engine import (
    IncidentSimulator,
    SimulationError,
    is_past_end_time,
    is_past_start_time,
    is_more_than_one_day_old,
)
from .scheduler import SimulationScheduler, JobStats

__all__ = [
    "AvailabilityTracker",
    "IncidentSimulator",
    "SimulationError",
    "is_past_end_time",
    "is_past_start_time",
    "is_more_than_one_day_old",
    "SimulationScheduler",
    "JobStats",
]
