"""Domain interfaces for aside-cache.

This module contains abstract interfaces that define contracts
for time sources and eviction strategies.
"""

from __future__ import annotations

from .clock import Clock, ManualClock, MonotonicClock
from .eviction_policy import EvictionPolicy

__all__ = ["Clock", "EvictionPolicy", "ManualClock", "MonotonicClock"]
