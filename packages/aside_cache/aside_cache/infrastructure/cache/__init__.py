"""Cache store infrastructure for aside-cache."""

from __future__ import annotations

from .cache_store import CacheStore, EvictionCallback, ttl_to_seconds

__all__ = [
    "CacheStore",
    "EvictionCallback",
    "ttl_to_seconds",
]
