"""msgpack encoding of cache snapshots.

A snapshot records each live entry with its remaining TTL rather than an
absolute expiry, because store clocks are monotonic and process-local.
Keys and values must be msgpack-serializable. Lists are restored as tuples.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from typing import Any

import msgpack

from aside_cache.domain.exceptions import SnapshotError
from aside_cache.infrastructure.logging import get_logger

logger = get_logger(__name__)

SNAPSHOT_FORMAT_VERSION = 1


def encode_snapshot(entries: Mapping[Hashable, tuple[Any, float]]) -> bytes:
    """Encode ``{key: (value, remaining_ttl_seconds)}`` as msgpack bytes.

    Raises:
        SnapshotError: If a key or value cannot be serialized
    """
    payload = {
        "version": SNAPSHOT_FORMAT_VERSION,
        "entries": [[key, value, ttl] for key, (value, ttl) in entries.items()],
    }
    try:
        data = msgpack.packb(payload, use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as e:
        raise SnapshotError("dump", str(e)) from e

    logger.debug(
        "Encoded cache snapshot", extra={"entries_count": len(entries), "size_bytes": len(data)}
    )
    return data


def decode_snapshot(data: bytes) -> list[tuple[Hashable, Any, float]]:
    """Decode snapshot bytes into ``(key, value, remaining_ttl_seconds)`` triples.

    Raises:
        SnapshotError: If the payload is malformed or of an unknown version
    """
    try:
        # Lists come back as tuples so that composite keys stay hashable
        payload = msgpack.unpackb(data, raw=False, use_list=False, strict_map_key=False)
    except (msgpack.UnpackException, ValueError, TypeError) as e:
        raise SnapshotError("restore", f"invalid msgpack payload: {e}") from e

    if not isinstance(payload, dict) or payload.get("version") != SNAPSHOT_FORMAT_VERSION:
        raise SnapshotError("restore", "unsupported snapshot format")

    entries = []
    for item in payload.get("entries", ()):
        if not isinstance(item, tuple) or len(item) != 3:
            raise SnapshotError("restore", f"malformed entry {item!r}")
        key, value, ttl = item
        entries.append((key, value, float(ttl)))
    return entries
