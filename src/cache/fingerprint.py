# src/cache/fingerprint.py — v1
"""File identity keys for the tag cache.

Identity is name + byte size + modification time in milliseconds, read
from file metadata without touching the content. Files that share all
three values collide; a content hash would avoid that at the cost of
reading every byte.
"""

from __future__ import annotations

from pathlib import Path

from lumbago.core.models import FileIdentity

CACHE_PREFIX = "lumbago_ai_cache_v1_"


def compute_identity(name: str, size: int, mtime_ms: int | float) -> FileIdentity:
    """Build a FileIdentity from its three components."""
    return FileIdentity(name=name, size=int(size), mtime_ms=int(mtime_ms))


def identity_from_path(path: Path | str) -> FileIdentity:
    """Stat *path* and return its identity."""
    p = Path(path)
    st = p.stat()
    return compute_identity(p.name, st.st_size, st.st_mtime_ns // 1_000_000)


def cache_key(identity: FileIdentity) -> str:
    """Namespaced store key for an identity."""
    return CACHE_PREFIX + identity.key
