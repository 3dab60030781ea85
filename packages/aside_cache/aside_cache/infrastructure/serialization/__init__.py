"""Snapshot serialization for aside-cache."""

from __future__ import annotations

from .snapshot import SNAPSHOT_FORMAT_VERSION, decode_snapshot, encode_snapshot

__all__ = ["SNAPSHOT_FORMAT_VERSION", "decode_snapshot", "encode_snapshot"]
