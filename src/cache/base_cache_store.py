# src/cache/base_cache_store.py — v2
"""Abstract tag cache interface.

The cache is a performance optimization, never a correctness dependency:
read failures degrade to a miss and write failures are logged and dropped.
Backends implement the raw `_read/_write/_delete/_clear/_count/_purge` hooks and
may raise freely; the public methods absorb those errors.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from lumbago.cache.models import CacheEntry
from lumbago.core.models import TagSet

logger = logging.getLogger(__name__)


class BaseTagCache(ABC):
    """Unified interface for tag cache backends. Synchronous by contract."""

    def __init__(self, max_age_s: float = 0.0) -> None:
        self._max_age_s = max_age_s

    # --- Public API ---

    def get(self, key: str) -> TagSet | None:
        """Return cached tags for *key*, or None on miss/expiry/failure."""
        try:
            entry = self._read(key)
        except Exception as e:
            logger.warning("Cache lookup failed for %s, treating as miss: %s", key, e)
            return None
        if entry is None:
            return None
        if entry.is_expired(self._max_age_s):
            logger.debug("Cache entry expired: %s", key)
            return None
        return entry.tags.model_copy(update={"data_origin": "cache"})

    def put(self, key: str, tags: TagSet) -> None:
        """Store tags for *key*. Last write wins."""
        entry = CacheEntry(tags=tags, timestamp=time.time())
        try:
            self._write(key, entry)
        except Exception as e:
            logger.warning("Failed to save to cache (likely quota exceeded): %s", e)

    def delete(self, key: str) -> None:
        try:
            self._delete(key)
        except Exception as e:
            logger.warning("Failed to delete cache entry %s: %s", key, e)

    def clear(self) -> None:
        """Remove every entry owned by this cache."""
        try:
            self._clear()
        except Exception as e:
            logger.warning("Failed to clear cache: %s", e)

    def purge_expired(self, now: float | None = None) -> int:
        """Delete entries older than max_age. Returns the number removed."""
        if self._max_age_s <= 0:
            return 0
        cutoff = (time.time() if now is None else now) - self._max_age_s
        try:
            removed = self._purge(cutoff)
        except Exception as e:
            logger.warning("Failed to purge expired cache entries: %s", e)
            return 0
        logger.info("Purged %d expired cache entries", removed)
        return removed

    def __len__(self) -> int:
        try:
            return self._count()
        except Exception as e:
            logger.warning("Failed to count cache entries: %s", e)
            return 0

    # --- Backend hooks ---

    @abstractmethod
    def _read(self, key: str) -> CacheEntry | None:
        """Load the raw entry or None."""

    @abstractmethod
    def _write(self, key: str, entry: CacheEntry) -> None:
        """Persist an entry (upsert)."""

    @abstractmethod
    def _delete(self, key: str) -> None:
        """Remove one entry if present."""

    @abstractmethod
    def _clear(self) -> None:
        """Remove all entries."""

    @abstractmethod
    def _count(self) -> int:
        """Number of stored entries."""

    @abstractmethod
    def _purge(self, cutoff: float) -> int:
        """Remove entries written before *cutoff*. Returns the count."""
