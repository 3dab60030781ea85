"""Bounded key/value store with TTL expiry and pluggable eviction."""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from datetime import timedelta
from typing import Any, Generic, TypeVar

from aside_cache.domain.entities import CacheEntry
from aside_cache.domain.enums import EvictionPolicyType, RemovalReason
from aside_cache.domain.exceptions import ConfigurationError
from aside_cache.domain.interfaces import Clock, MonotonicClock
from aside_cache.domain.strategies import create_eviction_policy
from aside_cache.infrastructure.logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

EvictionCallback = Callable[[Any, Any, RemovalReason], None]


def ttl_to_seconds(ttl: timedelta | float | int, config_key: str = "ttl") -> float:
    """Normalize a TTL to a positive number of seconds.

    Args:
        ttl: A timedelta or a number of seconds
        config_key: Name reported in the error

    Returns:
        TTL in seconds

    Raises:
        ConfigurationError: If the TTL is not a positive duration
    """
    if isinstance(ttl, timedelta):
        seconds = ttl.total_seconds()
    elif isinstance(ttl, int | float) and not isinstance(ttl, bool):
        seconds = float(ttl)
    else:
        raise ConfigurationError(config_key, f"expected a duration, got {type(ttl).__name__}")
    if seconds <= 0:
        raise ConfigurationError(config_key, f"must be positive, got {seconds} seconds")
    return seconds


class CacheStore(Generic[K, V]):
    """Thread-safe bounded cache store.

    This store provides:
    - Capacity-bounded storage with LRU or LFU eviction
    - TTL-based expiration, removed lazily on lookup or by ``cleanup_expired``
    - Hit/miss/eviction statistics
    - An optional eviction callback for every removal

    Every read-modify-write runs inside one critical section guarded by a
    ``threading.Lock``. Nothing inside the lock suspends or calls user code:
    eviction callbacks run after the lock is released.
    """

    def __init__(
        self,
        capacity: int,
        default_ttl: timedelta | float,
        eviction_policy: EvictionPolicyType | str = EvictionPolicyType.LRU,
        clock: Clock | None = None,
        eviction_callback: EvictionCallback | None = None,
    ) -> None:
        """Initialize the cache store.

        Args:
            capacity: Maximum number of entries, a positive integer
            default_ttl: TTL applied when ``put`` is called without one
            eviction_policy: Which entry to drop when the store is full
            clock: Time source for expiry (defaults to a monotonic clock)
            eviction_callback: Called as ``callback(key, value, reason)``
                after an entry leaves the store; exceptions it raises are logged

        Raises:
            ConfigurationError: If capacity, TTL or policy are invalid
        """
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
            raise ConfigurationError(
                "capacity", f"must be a positive integer, got {capacity!r}"
            )
        try:
            self._policy_type = EvictionPolicyType(
                eviction_policy.upper() if isinstance(eviction_policy, str) else eviction_policy
            )
        except ValueError as e:
            raise ConfigurationError(
                "eviction_policy", f"unknown policy {eviction_policy!r}"
            ) from e

        self._capacity = capacity
        self._default_ttl = ttl_to_seconds(default_ttl, "default_ttl")
        self._policy = create_eviction_policy(self._policy_type)
        self._clock = clock or MonotonicClock()
        self._eviction_callback = eviction_callback

        self._entries: dict[K, CacheEntry[K, V]] = {}
        self._lock = threading.Lock()

        # Statistics
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: K, default: Any = None) -> V | Any:
        """Get value from the store.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            Cached value, or ``default`` if not found/expired
        """
        removed: list[tuple[Any, Any, RemovalReason]] = []
        with self._lock:
            now = self._clock.now()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                found = False
            elif entry.is_expired(now):
                self._remove_locked(key, RemovalReason.EXPIRED, removed)
                self._misses += 1
                self._expirations += 1
                found = False
            else:
                entry.access(now)
                self._policy.record_access(key)
                self._hits += 1
                found = True

        self._notify(removed)

        if not found:
            logger.debug(
                "Cache miss",
                extra={"key": key, "expired": bool(removed), "hit_rate": self.hit_rate},
            )
            return default

        logger.debug("Cache hit", extra={"key": key, "hit_count": entry.hit_count})
        return entry.value

    def put(self, key: K, value: V, ttl: timedelta | float | None = None) -> None:
        """Insert or replace an entry.

        When a new key would push the store past capacity, one entry chosen
        by the eviction policy is removed first.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Optional custom TTL (defaults to the store's default TTL)

        Raises:
            ConfigurationError: If ``ttl`` is not a positive duration
        """
        seconds = self._default_ttl if ttl is None else ttl_to_seconds(ttl)
        removed: list[tuple[Any, Any, RemovalReason]] = []

        with self._lock:
            now = self._clock.now()
            existing = self._entries.get(key)
            if existing is not None:
                self._entries[key] = CacheEntry(
                    key=key,
                    value=value,
                    created_at=now,
                    expires_at=now + seconds,
                    hit_count=existing.hit_count,
                )
                self._policy.record_access(key)
                removed.append((key, existing.value, RemovalReason.REPLACED))
            else:
                while len(self._entries) >= self._capacity:
                    if not self._evict_one_locked(now, removed):
                        break
                self._entries[key] = CacheEntry(
                    key=key, value=value, created_at=now, expires_at=now + seconds
                )
                self._policy.record_insert(key)
            size = len(self._entries)

        self._notify(removed)

        logger.debug(
            "Cache put",
            extra={"key": key, "ttl_seconds": seconds, "cache_size": size},
        )

    def delete(self, key: K) -> bool:
        """Remove an entry unconditionally.

        Args:
            key: Cache key

        Returns:
            True if an entry was removed, False if the key was absent
        """
        removed: list[tuple[Any, Any, RemovalReason]] = []
        with self._lock:
            found = self._remove_locked(key, RemovalReason.DELETED, removed)
        self._notify(removed)
        return found

    def contains(self, key: K) -> bool:
        """Check whether a live entry exists without touching statistics or recency."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock.now())

    def __contains__(self, key: object) -> bool:
        return self.contains(key)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[K]:
        """Keys of all live entries, least recently inserted first."""
        with self._lock:
            now = self._clock.now()
            return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def clear(self) -> int:
        """Remove every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = [
                (key, entry.value, RemovalReason.CLEARED) for key, entry in self._entries.items()
            ]
            self._entries.clear()
            self._policy.reset()

        self._notify(removed)
        logger.info("Cache cleared", extra={"entries_cleared": len(removed)})
        return len(removed)

    def cleanup_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        removed: list[tuple[Any, Any, RemovalReason]] = []
        with self._lock:
            now = self._clock.now()
            expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired_keys:
                self._remove_locked(key, RemovalReason.EXPIRED, removed)
            self._expirations += len(expired_keys)

        self._notify(removed)

        if expired_keys:
            logger.info("Cleaned up expired entries", extra={"count": len(expired_keys)})
        return len(expired_keys)

    def snapshot(self) -> dict[K, tuple[V, float]]:
        """Export live entries.

        Returns:
            Mapping of key to ``(value, remaining_ttl_seconds)``
        """
        with self._lock:
            now = self._clock.now()
            return {
                key: (entry.value, entry.remaining_ttl(now))
                for key, entry in self._entries.items()
                if not entry.is_expired(now)
            }

    def _evict_one_locked(
        self, now: float, removed: list[tuple[Any, Any, RemovalReason]]
    ) -> bool:
        """Evict the policy's victim. Caller must hold the lock."""
        victim = self._policy.select_victim()
        if victim is None:
            return False

        entry = self._entries[victim]
        if entry.is_expired(now):
            self._remove_locked(victim, RemovalReason.EXPIRED, removed)
            self._expirations += 1
        else:
            self._remove_locked(victim, RemovalReason.EVICTED, removed)
            self._evictions += 1
        return True

    def _remove_locked(
        self,
        key: K,
        reason: RemovalReason,
        removed: list[tuple[Any, Any, RemovalReason]],
    ) -> bool:
        """Drop an entry and queue its eviction notification. Caller must hold the lock."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._policy.record_remove(key)
        removed.append((key, entry.value, reason))
        return True

    def _notify(self, removed: list[tuple[Any, Any, RemovalReason]]) -> None:
        for key, value, reason in removed:
            logger.debug("Cache entry removed", extra={"key": key, "reason": reason.value})
            if self._eviction_callback is None:
                continue
            try:
                self._eviction_callback(key, value, reason)
            except Exception as e:
                logger.error(
                    "Eviction callback failed",
                    exc_info=e,
                    extra={"key": key, "reason": reason.value, "error": str(e)},
                )

    @property
    def size(self) -> int:
        """Get current number of stored entries, expired or not."""
        return len(self._entries)

    @property
    def capacity(self) -> int:
        """Get store capacity."""
        return self._capacity

    @property
    def default_ttl(self) -> timedelta:
        """Get the TTL applied when ``put`` is called without one."""
        return timedelta(seconds=self._default_ttl)

    @property
    def eviction_policy(self) -> EvictionPolicyType:
        """Get the eviction policy type."""
        return self._policy_type

    @property
    def clock(self) -> Clock:
        """Get the store's time source."""
        return self._clock

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate."""
        total = self._hits + self._misses
        return self._hits / total if total > 0 else 0.0

    @property
    def stats(self) -> dict[str, Any]:
        """Get store statistics."""
        return {
            "size": self.size,
            "capacity": self.capacity,
            "eviction_policy": self._policy_type.value,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self.hit_rate,
            "evictions": self._evictions,
            "expirations": self._expirations,
        }
