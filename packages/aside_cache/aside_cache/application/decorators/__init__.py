"""Decorators built on top of the cache facade."""

from __future__ import annotations

from .cached import cached, default_key_builder

__all__ = ["cached", "default_key_builder"]
