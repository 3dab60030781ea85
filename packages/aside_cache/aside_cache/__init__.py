"""aside-cache: in-process cache-aside / read-through cache with stampede control."""

from __future__ import annotations

from .application.decorators import cached
from .application.services import AsideCache, LoadCoordinator
from .domain.enums import EvictionPolicyType, RemovalReason, WriteStrategy
from .domain.exceptions import (
    AsideCacheError,
    ConfigurationError,
    LoadTimeoutError,
    SnapshotError,
    SourceLoadError,
    SourcePersistError,
)
from .domain.interfaces import Clock, ManualClock, MonotonicClock
from .infrastructure.cache import CacheStore
from .version import __version__

__all__ = [
    "AsideCache",
    "AsideCacheError",
    "CacheStore",
    "Clock",
    "ConfigurationError",
    "EvictionPolicyType",
    "LoadCoordinator",
    "LoadTimeoutError",
    "ManualClock",
    "MonotonicClock",
    "RemovalReason",
    "SnapshotError",
    "SourceLoadError",
    "SourcePersistError",
    "WriteStrategy",
    "__version__",
    "cached",
]
