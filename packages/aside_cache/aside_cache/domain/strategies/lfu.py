"""Least-frequently-used eviction strategy.

Each tracked key carries an access counter and the sequence number of its
insertion. The victim is the key with the lowest counter; ties go to the
oldest insertion. Candidates live in a heap with lazy invalidation: every
counter change pushes a fresh heap item and stale items are discarded when
they surface.
"""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Hashable

from aside_cache.domain.interfaces.eviction_policy import EvictionPolicy

# Rebuild the heap once stale items outnumber live keys by this factor
_COMPACTION_FACTOR = 4


class LFUEvictionPolicy(EvictionPolicy):
    """Evicts the key with the fewest accesses, oldest insertion first."""

    def __init__(self) -> None:
        # key -> (access count, insertion sequence)
        self._meta: dict[Hashable, tuple[int, int]] = {}
        self._heap: list[tuple[int, int, Hashable]] = []
        self._sequence = itertools.count()

    def record_insert(self, key: Hashable) -> None:
        meta = (0, next(self._sequence))
        self._meta[key] = meta
        self._push(key, meta)

    def record_access(self, key: Hashable) -> None:
        meta = self._meta.get(key)
        if meta is None:
            self.record_insert(key)
            return
        meta = (meta[0] + 1, meta[1])
        self._meta[key] = meta
        self._push(key, meta)

    def record_remove(self, key: Hashable) -> None:
        self._meta.pop(key, None)

    def select_victim(self) -> Hashable | None:
        while self._heap:
            count, sequence, key = self._heap[0]
            if self._meta.get(key) == (count, sequence):
                return key
            heapq.heappop(self._heap)
        return None

    def frequency(self, key: Hashable) -> int | None:
        """Return the access count tracked for ``key``, if any."""
        meta = self._meta.get(key)
        return meta[0] if meta is not None else None

    def reset(self) -> None:
        self._meta.clear()
        self._heap.clear()

    def __len__(self) -> int:
        return len(self._meta)

    def _push(self, key: Hashable, meta: tuple[int, int]) -> None:
        # Sequence numbers are unique, so heap comparison never reaches the key
        heapq.heappush(self._heap, (meta[0], meta[1], key))
        if len(self._heap) > _COMPACTION_FACTOR * max(len(self._meta), 16):
            self._heap = [(count, seq, k) for k, (count, seq) in self._meta.items()]
            heapq.heapify(self._heap)
