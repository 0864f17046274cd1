# src/cache/memory_store.py — v2
"""In-process tag cache (CACHE_BACKEND=memory). Lost on exit."""

from __future__ import annotations

from lumbago.cache.base_cache_store import BaseTagCache
from lumbago.cache.models import CacheEntry


class MemoryTagCache(BaseTagCache):
    """Dict-backed cache, mainly for tests and one-shot CLI runs."""

    def __init__(self, max_age_s: float = 0.0) -> None:
        super().__init__(max_age_s=max_age_s)
        self._entries: dict[str, CacheEntry] = {}

    def _read(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def _write(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def _delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def _clear(self) -> None:
        self._entries.clear()

    def _count(self) -> int:
        return len(self._entries)

    def _purge(self, cutoff: float) -> int:
        expired = [k for k, e in self._entries.items() if e.timestamp < cutoff]
        for key in expired:
            del self._entries[key]
        return len(expired)
