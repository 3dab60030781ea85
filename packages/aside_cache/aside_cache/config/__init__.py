"""Configuration package for aside-cache."""

from .config import CacheSettings, get_config, reload_config

__all__ = ["CacheSettings", "get_config", "reload_config"]
