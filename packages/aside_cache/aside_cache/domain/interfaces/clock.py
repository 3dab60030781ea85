"""Clock abstraction used for TTL bookkeeping.

The cache never reads wall-clock time directly, so expiry can be driven
deterministically in tests and simulations.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of monotonically non-decreasing time in seconds."""

    @abstractmethod
    def now(self) -> float:
        """Return the current time in seconds."""
        pass


class MonotonicClock(Clock):
    """Clock backed by ``time.monotonic``."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """Clock that only moves when told to.

    Example:
        clock = ManualClock()
        store = CacheStore(capacity=10, default_ttl=timedelta(seconds=1), clock=clock)
        clock.advance(2)
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        """Move the clock forward.

        Args:
            seconds: Non-negative number of seconds to advance

        Returns:
            The new current time

        Raises:
            ValueError: If seconds is negative
        """
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now += seconds
            return self._now
