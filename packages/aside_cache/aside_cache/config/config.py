"""Centralized configuration management for aside-cache.

This module provides a centralized configuration system that supports:
- Environment variable overrides
- Default values with validation
- Type safety using Pydantic
- Hierarchical configuration structure

Settings only supply defaults. Every cache instance is constructed
explicitly and owns its own state.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from aside_cache.domain.enums import EvictionPolicyType, WriteStrategy


class StoreConfig(BaseModel):
    """Cache store configuration."""

    capacity: int = Field(
        default=1024, ge=1, le=10_000_000, description="Maximum number of entries in the store"
    )

    default_ttl_seconds: float = Field(
        default=300.0, gt=0, le=86400 * 30, description="Default entry time to live in seconds"
    )

    eviction_policy: EvictionPolicyType = Field(
        default=EvictionPolicyType.LRU, description="Eviction policy used when the store is full"
    )


class LoaderConfig(BaseModel):
    """Backing source load configuration."""

    load_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        le=3600,
        description="How long a caller waits for a load before giving up (None waits forever)",
    )


class WriteConfig(BaseModel):
    """Write path configuration."""

    strategy: WriteStrategy = Field(
        default=WriteStrategy.INVALIDATE,
        description="Invalidate or update the cached entry after a successful persist",
    )


class MaintenanceConfig(BaseModel):
    """Background maintenance configuration."""

    enable_auto_cleanup: bool = Field(
        default=True, description="Sweep expired entries in the background once started"
    )

    cleanup_interval_seconds: float = Field(
        default=60.0, gt=0, le=3600, description="Interval between expired entry sweeps"
    )


class CacheSettings(BaseSettings):
    """Main cache configuration.

    All configuration values can be overridden using environment variables
    with the prefix ASIDE_CACHE_ (e.g., ASIDE_CACHE_STORE__CAPACITY).
    """

    model_config = SettingsConfigDict(
        env_prefix="ASIDE_CACHE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-configurations
    store: StoreConfig = Field(default_factory=StoreConfig)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    write: WriteConfig = Field(default_factory=WriteConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)

    # Feature flags
    enable_metrics: bool = Field(default=True, description="Export Prometheus cache metrics")

    # Computed properties
    @property
    def default_ttl(self) -> timedelta:
        """Get default entry TTL as timedelta."""
        return timedelta(seconds=self.store.default_ttl_seconds)

    @property
    def cleanup_interval(self) -> timedelta:
        """Get cleanup interval as timedelta."""
        return timedelta(seconds=self.maintenance.cleanup_interval_seconds)


@lru_cache(maxsize=1)
def get_config() -> CacheSettings:
    """Get the cached default settings instance.

    This function returns a cached settings instance that reads from
    environment variables and the optional ``.env`` file.

    Returns:
        CacheSettings: The settings instance
    """
    return CacheSettings()


def reload_config() -> CacheSettings:
    """Reload settings from environment.

    This clears the cache and creates a new settings instance.

    Returns:
        CacheSettings: The new settings instance
    """
    get_config.cache_clear()
    return get_config()
