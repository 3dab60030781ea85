"""Least-recently-used eviction strategy."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable

from aside_cache.domain.interfaces.eviction_policy import EvictionPolicy


class LRUEvictionPolicy(EvictionPolicy):
    """Evicts the key that was touched longest ago.

    Keys are kept in access order: the first key of the ordered mapping is
    the least recently used, the last one the most recently used.
    """

    def __init__(self) -> None:
        self._order: OrderedDict[Hashable, None] = OrderedDict()

    def record_insert(self, key: Hashable) -> None:
        self._order[key] = None
        self._order.move_to_end(key)

    def record_access(self, key: Hashable) -> None:
        if key in self._order:
            self._order.move_to_end(key)
        else:
            self._order[key] = None

    def record_remove(self, key: Hashable) -> None:
        self._order.pop(key, None)

    def select_victim(self) -> Hashable | None:
        if not self._order:
            return None
        return next(iter(self._order))

    def reset(self) -> None:
        self._order.clear()

    def __len__(self) -> int:
        return len(self._order)
