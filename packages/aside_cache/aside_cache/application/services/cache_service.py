"""Cache facade combining the bounded store with per-key load deduplication.

Two access patterns are offered:

- Cache-aside / read-through reads with ``get``: a hit is served from the
  store, a miss is loaded once through the loader coordinator and stored.
- Writes with ``write``: the value is persisted to the backing source first,
  then the cached entry is invalidated (default) or updated in place.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Hashable, Mapping
from datetime import timedelta
from typing import Any, Generic, TypeVar

from aside_cache.application.services.load_coordinator import (
    LoadCoordinator,
    Loader,
    call_source,
)
from aside_cache.config import CacheSettings, get_config
from aside_cache.domain.enums import EvictionPolicyType, RemovalReason, WriteStrategy
from aside_cache.domain.exceptions import ConfigurationError, SourcePersistError
from aside_cache.domain.interfaces import Clock
from aside_cache.infrastructure.cache import CacheStore, EvictionCallback, ttl_to_seconds
from aside_cache.infrastructure.logging import get_logger
from aside_cache.infrastructure.monitoring import CacheMetricsCollector
from aside_cache.infrastructure.serialization import decode_snapshot, encode_snapshot

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

PersistFn = Callable[[Any], Any]

_MISSING = object()


class AsideCache(Generic[K, V]):
    """In-process cache with read-through loading and stampede control.

    Guarantees:
    - an expired entry is never returned
    - the store never holds more than ``capacity`` entries
    - at most one backing source load per key is in flight

    Each instance owns its state. Settings only provide defaults for
    arguments that are not given explicitly.

    Example:
        async with AsideCache(capacity=1000, default_ttl=timedelta(minutes=5)) as cache:
            user = await cache.get("user:42", loader=fetch_user)
            await cache.write("user:42", updated_user, persist=save_user)
    """

    def __init__(
        self,
        capacity: int | None = None,
        default_ttl: timedelta | float | None = None,
        eviction_policy: EvictionPolicyType | str | None = None,
        write_strategy: WriteStrategy | str | None = None,
        loader: Loader | None = None,
        load_timeout: float | None = None,
        clock: Clock | None = None,
        eviction_callback: EvictionCallback | None = None,
        name: str = "default",
        metrics: CacheMetricsCollector | None = None,
        settings: CacheSettings | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries (defaults to settings)
            default_ttl: TTL for entries stored without one (defaults to settings)
            eviction_policy: ``LRU`` or ``LFU`` (defaults to settings)
            write_strategy: What ``write`` does after persisting (defaults to settings)
            loader: Loader used by ``get`` when none is passed (read-through mode)
            load_timeout: Seconds a caller waits for a load (defaults to settings)
            clock: Time source for TTLs
            eviction_callback: Called as ``callback(key, value, reason)`` on removal
            name: Cache name used in logs and metric labels
            metrics: Metrics collector; created from ``name`` when metrics are enabled
            settings: Settings to read defaults from (defaults to ``get_config()``)

        Raises:
            ConfigurationError: If any setting is invalid
        """
        settings = settings or get_config()

        self._name = name
        self._metrics = metrics
        if self._metrics is None and settings.enable_metrics:
            self._metrics = CacheMetricsCollector(name)
        self._eviction_callback = eviction_callback

        self._store: CacheStore[K, V] = CacheStore(
            capacity=capacity if capacity is not None else settings.store.capacity,
            default_ttl=default_ttl if default_ttl is not None else settings.default_ttl,
            eviction_policy=(
                eviction_policy if eviction_policy is not None else settings.store.eviction_policy
            ),
            clock=clock,
            eviction_callback=self._on_removal,
        )
        self._coordinator: LoadCoordinator[K, V] = LoadCoordinator(name, self._metrics)

        self._loader = loader
        self._load_timeout = (
            load_timeout if load_timeout is not None else settings.loader.load_timeout_seconds
        )
        if self._load_timeout is not None and self._load_timeout <= 0:
            raise ConfigurationError("load_timeout", f"must be positive, got {self._load_timeout}")
        self._write_strategy = self._resolve_strategy(
            write_strategy if write_strategy is not None else settings.write.strategy
        )

        self._auto_cleanup = settings.maintenance.enable_auto_cleanup
        self._cleanup_interval = settings.maintenance.cleanup_interval_seconds
        self._cleanup_task: asyncio.Task[None] | None = None
        self._running = False

        logger.info(
            "Initialized AsideCache",
            extra={
                "cache": name,
                "capacity": self._store.capacity,
                "default_ttl_seconds": self._store.default_ttl.total_seconds(),
                "eviction_policy": self._store.eviction_policy.value,
                "write_strategy": self._write_strategy.value,
            },
        )

    @classmethod
    def from_settings(cls, settings: CacheSettings, **overrides: Any) -> AsideCache[Any, Any]:
        """Build a cache from explicit settings, with keyword overrides."""
        return cls(settings=settings, **overrides)

    async def get(
        self,
        key: K,
        loader: Loader | None = None,
        ttl: timedelta | float | None = None,
        timeout: float | None = None,
    ) -> V:
        """Return the cached value, loading it on a miss.

        Args:
            key: Cache key
            loader: ``loader(key)`` for this call (defaults to the configured loader)
            ttl: TTL for a value loaded by this call
            timeout: Seconds to wait for the load (defaults to the configured timeout)

        Returns:
            Cached or freshly loaded value

        Raises:
            ConfigurationError: If no loader is available or ttl or timeout is invalid
            SourceLoadError: If the backing source load failed
            LoadTimeoutError: If the wait timed out
        """
        loader = loader if loader is not None else self._loader
        if loader is None:
            raise ConfigurationError("loader", "no loader given and none configured")
        seconds = ttl_to_seconds(ttl) if ttl is not None else None
        if timeout is not None and timeout <= 0:
            raise ConfigurationError("timeout", f"must be positive, got {timeout}")

        value = self._store.get(key, _MISSING)
        self._record_lookup(value is not _MISSING)
        if value is not _MISSING:
            return value

        def store_loaded(loaded: V) -> None:
            self._store.put(key, loaded, seconds)

        return await self._coordinator.load_once(
            key,
            loader,
            timeout=timeout if timeout is not None else self._load_timeout,
            on_success=store_loaded,
        )

    async def get_if_present(self, key: K, default: Any = None) -> V | Any:
        """Return the cached value without loading.

        Args:
            key: Cache key
            default: Returned on a miss

        Returns:
            Cached value or ``default``
        """
        value = self._store.get(key, _MISSING)
        self._record_lookup(value is not _MISSING)
        return default if value is _MISSING else value

    async def put(self, key: K, value: V, ttl: timedelta | float | None = None) -> None:
        """Store a value directly.

        Any load in flight for ``key`` is detached so it cannot overwrite
        this value when it completes.
        """
        self._coordinator.invalidate(key)
        self._store.put(key, value, ttl)

    async def invalidate(self, key: K) -> bool:
        """Remove ``key`` and detach any load in flight for it.

        Returns:
            True if a cached entry was removed
        """
        self._coordinator.invalidate(key)
        removed = self._store.delete(key)
        logger.debug(
            "Invalidated key", extra={"cache": self._name, "key": key, "removed": removed}
        )
        return removed

    async def write(
        self,
        key: K,
        value: V,
        persist: PersistFn,
        ttl: timedelta | float | None = None,
        strategy: WriteStrategy | str | None = None,
    ) -> None:
        """Persist ``value`` to the backing source, then update the cache.

        ``persist(value)`` runs first. If it raises or returns ``False`` the
        cache is left untouched. On success the entry is invalidated
        (``WriteStrategy.INVALIDATE``) or replaced (``WriteStrategy.UPDATE``).

        Args:
            key: Cache key
            value: New value
            persist: Function writing the value to the backing source
            ttl: TTL for the cached value under ``UPDATE``
            strategy: Overrides the configured write strategy for this call

        Raises:
            SourcePersistError: If persisting failed
            ConfigurationError: If ttl or strategy are invalid
        """
        strategy = (
            self._resolve_strategy(strategy) if strategy is not None else self._write_strategy
        )
        seconds = ttl_to_seconds(ttl) if ttl is not None else None

        try:
            result = await call_source(persist, value)
        except Exception as e:
            self._record_write(strategy, "failure")
            logger.error(
                "Persist failed, cache left untouched",
                extra={"cache": self._name, "key": key, "error": str(e)},
            )
            raise SourcePersistError(key, str(e) or type(e).__name__) from e

        if result is False:
            self._record_write(strategy, "failure")
            logger.error(
                "Persist reported failure, cache left untouched",
                extra={"cache": self._name, "key": key},
            )
            raise SourcePersistError(key, "persist reported failure")

        if strategy is WriteStrategy.INVALIDATE:
            await self.invalidate(key)
        else:
            await self.put(key, value, seconds)

        self._record_write(strategy, "success")
        logger.info(
            "Write completed",
            extra={"cache": self._name, "key": key, "strategy": strategy.value},
        )

    async def warm(self, entries: Mapping[K, V], ttl: timedelta | float | None = None) -> int:
        """Preheat the cache with many entries.

        Args:
            entries: Key/value pairs to cache
            ttl: Optional TTL for all entries

        Returns:
            Number of entries stored
        """
        seconds = ttl_to_seconds(ttl) if ttl is not None else None
        for key, value in entries.items():
            await self.put(key, value, seconds)

        logger.info("Cache preheated", extra={"cache": self._name, "entries_count": len(entries)})
        return len(entries)

    async def clear(self) -> int:
        """Remove every entry and detach all in-flight loads.

        Returns:
            Number of entries removed
        """
        self._coordinator.invalidate_all()
        return self._store.clear()

    async def cleanup_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        removed = self._store.cleanup_expired()
        self._update_store_metrics()
        return removed

    async def dump_snapshot(self) -> bytes:
        """Export live entries with their remaining TTL as msgpack bytes.

        Raises:
            SnapshotError: If a key or value cannot be serialized
        """
        return encode_snapshot(self._store.snapshot())

    async def restore_snapshot(self, data: bytes) -> int:
        """Replace the cache contents with a snapshot.

        Entries whose remaining TTL ran out are skipped.

        Args:
            data: Bytes produced by ``dump_snapshot``

        Returns:
            Number of entries restored

        Raises:
            SnapshotError: If the snapshot cannot be decoded
        """
        entries = decode_snapshot(data)
        await self.clear()

        restored = 0
        for key, value, remaining in entries:
            if remaining <= 0:
                continue
            self._store.put(key, value, remaining)
            restored += 1

        logger.info(
            "Cache restored",
            extra={
                "cache": self._name,
                "entries_count": restored,
                "skipped": len(entries) - restored,
            },
        )
        return restored

    async def start(self) -> None:
        """Start the background expired entry sweeper if auto cleanup is enabled."""
        if self._running:
            return

        self._running = True
        if self._auto_cleanup:
            self._cleanup_task = asyncio.create_task(
                self._cleanup_loop(), name=f"aside-cache-cleanup[{self._name}]"
            )
            logger.info(
                "Started cache cleanup task",
                extra={"cache": self._name, "interval_seconds": self._cleanup_interval},
            )

    async def close(self) -> None:
        """Stop background cleanup and cancel in-flight loads."""
        self._running = False
        if self._cleanup_task:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None
        await self._coordinator.close()
        logger.info("Closed cache", extra={"cache": self._name})

    async def __aenter__(self) -> AsideCache[K, V]:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def name(self) -> str:
        """Get the cache name."""
        return self._name

    @property
    def store(self) -> CacheStore[K, V]:
        """Get the underlying store."""
        return self._store

    @property
    def coordinator(self) -> LoadCoordinator[K, V]:
        """Get the underlying loader coordinator."""
        return self._coordinator

    @property
    def write_strategy(self) -> WriteStrategy:
        """Get the default write strategy."""
        return self._write_strategy

    @property
    def size(self) -> int:
        """Get current cache size."""
        return self._store.size

    @property
    def capacity(self) -> int:
        """Get cache capacity."""
        return self._store.capacity

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate."""
        return self._store.hit_rate

    @property
    def stats(self) -> dict[str, Any]:
        """Get combined store and loader statistics."""
        return {"name": self._name, **self._store.stats, **self._coordinator.stats}

    async def _cleanup_loop(self) -> None:
        """Background task to sweep expired entries."""
        while self._running:
            try:
                await asyncio.sleep(self._cleanup_interval)
                await self.cleanup_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(
                    "Error in cleanup loop",
                    exc_info=e,
                    extra={"cache": self._name, "error": str(e)},
                )

    def _on_removal(self, key: Any, value: Any, reason: RemovalReason) -> None:
        if self._metrics:
            self._metrics.record_removal(reason)
        if self._eviction_callback:
            self._eviction_callback(key, value, reason)

    def _record_lookup(self, hit: bool) -> None:
        if self._metrics:
            self._metrics.record_lookup(hit)
            self._update_store_metrics()

    def _record_write(self, strategy: WriteStrategy, outcome: str) -> None:
        if self._metrics:
            self._metrics.record_write(strategy.value, outcome)

    def _update_store_metrics(self) -> None:
        if self._metrics:
            self._metrics.update_store_metrics(self._store.size, self._store.hit_rate)

    @staticmethod
    def _resolve_strategy(strategy: WriteStrategy | str) -> WriteStrategy:
        try:
            return WriteStrategy(strategy.lower() if isinstance(strategy, str) else strategy)
        except ValueError as e:
            raise ConfigurationError("write_strategy", f"unknown strategy {strategy!r}") from e
