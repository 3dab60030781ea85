"""Domain entities for aside-cache."""

from __future__ import annotations

from .entry import CacheEntry

__all__ = ["CacheEntry"]
