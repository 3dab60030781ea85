"""Application services for aside-cache."""

from __future__ import annotations

from .cache_service import AsideCache
from .load_coordinator import InFlightLoad, LoadCoordinator, call_source

__all__ = ["AsideCache", "InFlightLoad", "LoadCoordinator", "call_source"]
