"""Monitoring infrastructure for aside-cache."""

from __future__ import annotations

from .metrics import CacheMetricsCollector

__all__ = ["CacheMetricsCollector"]
