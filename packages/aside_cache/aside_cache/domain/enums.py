"""Domain enums for aside-cache."""

from __future__ import annotations

from enum import Enum


class EvictionPolicyType(str, Enum):
    """Eviction policy selected when a cache store is constructed."""

    LRU = "LRU"
    LFU = "LFU"


class WriteStrategy(str, Enum):
    """What the write path does to the cache after a successful persist."""

    INVALIDATE = "invalidate"
    UPDATE = "update"


class RemovalReason(str, Enum):
    """Why an entry left the cache store."""

    EVICTED = "evicted"
    EXPIRED = "expired"
    REPLACED = "replaced"
    DELETED = "deleted"
    CLEARED = "cleared"
