"""Abstract interface for eviction policies.

This module defines the contract a cache store uses to decide which entry
to drop when it is full. The store owns the entries; a policy only tracks
ordering metadata for the keys it is told about.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Hashable


class EvictionPolicy(ABC):
    """Abstract base class for eviction strategies.

    Implementations are not thread-safe on their own. The cache store calls
    them only from inside its critical section.
    """

    @abstractmethod
    def record_insert(self, key: Hashable) -> None:
        """Track a key that was newly inserted into the store.

        Args:
            key: Key of the new entry.
        """
        pass

    @abstractmethod
    def record_access(self, key: Hashable) -> None:
        """Track a hit on, or replacement of, an existing key.

        Args:
            key: Key that was accessed.
        """
        pass

    @abstractmethod
    def record_remove(self, key: Hashable) -> None:
        """Forget a key that left the store for any reason.

        Args:
            key: Key that was removed. Unknown keys are ignored.
        """
        pass

    @abstractmethod
    def select_victim(self) -> Hashable | None:
        """Choose the key to evict next.

        Returns:
            The key to evict, or None if no keys are tracked.

        Note:
            Selecting a victim does not forget it. The store calls
            ``record_remove`` once the entry is actually dropped.
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Forget every tracked key."""
        pass
