"""Cache entry entity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[K, V]):
    """A stored value with its expiry and access metadata.

    Timestamps are seconds on the owning store's clock, not wall-clock time.
    """

    key: K
    value: V
    created_at: float
    expires_at: float
    last_accessed: float | None = None
    hit_count: int = 0

    def __post_init__(self) -> None:
        if self.last_accessed is None:
            self.last_accessed = self.created_at

    def is_expired(self, now: float) -> bool:
        """Check if entry is expired at ``now``."""
        return now >= self.expires_at

    def remaining_ttl(self, now: float) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self.expires_at - now)

    def access(self, now: float) -> None:
        """Record an access to this entry."""
        self.hit_count += 1
        self.last_accessed = now
