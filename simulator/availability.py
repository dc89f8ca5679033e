"""
Resource Type Availability Tracker
==================================
Maps each resource type present in the repository to an "in use" flag
so that two concurrently active incidents never target the same type.

Only types carried by at least one resource are tracked; the map is
empty until the first reset().

Mutation points: reset(), mark_in_use(), release().
"""

import random
import logging
import threading
from typing import Dict, Iterable, Optional

from schema import Resource, ResourceType, StatusType

logger = logging.getLogger("facility.simulator")


class AvailabilityTracker:
    """Thread-safe resource type → in-use map."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._in_use: Dict[ResourceType, bool] = {}
        self._lock = threading.Lock()
        self._rng = rng or random.Random()

    def reset(self, resources: Iterable[Resource]) -> None:
        """
        Track exactly the types the resources carry. Each starts
        available, then any type with a resource that is not UP is
        marked in use.
        """
        with self._lock:
            self._in_use = {}
            for r in resources:
                if r.type is None:
                    continue
                used = self._in_use.get(r.type, False)
                self._in_use[r.type] = used or r.current_status != StatusType.UP
            snapshot = dict(self._in_use)

        for t, used in snapshot.items():
            logger.debug(f"Availability {t.value}: {'in use' if used else 'available'}")

    def pick_available(self) -> Optional[ResourceType]:
        """Uniformly random available type, or None when all are in use."""
        with self._lock:
            available = [t for t, used in self._in_use.items() if not used]
        if not available:
            return None
        return self._rng.choice(available)

    def mark_in_use(self, resource_type: ResourceType) -> None:
        with self._lock:
            if resource_type in self._in_use:
                self._in_use[resource_type] = True

    def release(self, resource_type: ResourceType) -> None:
        with self._lock:
            if resource_type in self._in_use:
                self._in_use[resource_type] = False

    def is_in_use(self, resource_type: ResourceType) -> bool:
        with self._lock:
            return self._in_use.get(resource_type, False)

    def snapshot(self) -> Dict[str, bool]:
        """Current flags keyed by type value."""
        with self._lock:
            return {t.value: used for t, used in self._in_use.items()}
