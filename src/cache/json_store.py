# src/cache/json_store.py — v2
"""JSON file-based tag cache (default CACHE_BACKEND=json).

Stores one JSON file per identity key under CACHE_ROOT. Every file this
store owns is named with the cache prefix; other files in CACHE_ROOT are
never counted or removed. An unusable CACHE_ROOT makes every lookup a
miss instead of failing construction.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from lumbago.cache.base_cache_store import BaseTagCache
from lumbago.cache.fingerprint import CACHE_PREFIX
from lumbago.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_MAX_STEM = 180


class JsonTagCache(BaseTagCache):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str, max_age_s: float = 0.0) -> None:
        super().__init__(max_age_s=max_age_s)
        self._root = Path(cache_root).expanduser()
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cache root %s is unavailable, caching disabled: %s", self._root, e)

    @property
    def root(self) -> Path:
        return self._root

    def _read(self, key: str) -> CacheEntry | None:
        path = self._entry_path(key)
        if not path.is_file():
            return None
        return CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))

    def _write(self, key: str, entry: CacheEntry) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path = self._entry_path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(entry.model_dump_json(by_alias=True), encoding="utf-8")
        tmp.replace(path)

    def _delete(self, key: str) -> None:
        path = self._entry_path(key)
        if path.is_file():
            path.unlink()

    def _clear(self) -> None:
        removed = 0
        for path in self._owned_files():
            path.unlink()
            removed += 1
        logger.info("Cleared %d cache entries from %s", removed, self._root)

    def _count(self) -> int:
        return sum(1 for _ in self._owned_files())

    def _purge(self, cutoff: float) -> int:
        removed = 0
        for path in self._owned_files():
            try:
                entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
            except ValueError:
                logger.debug("Removing unreadable cache file %s", path.name)
            else:
                if entry.timestamp >= cutoff:
                    continue
            path.unlink()
            removed += 1
        return removed

    def _owned_files(self) -> list[Path]:
        if not self._root.is_dir():
            return []
        return list(self._root.glob(f"{CACHE_PREFIX}*.json"))

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        stem = key if key.startswith(CACHE_PREFIX) else CACHE_PREFIX + key
        safe_key = stem.replace("/", "_").replace("\\", "_").replace(":", "_")
        if len(safe_key) > _MAX_STEM:
            digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
            safe_key = f"{safe_key[:_MAX_STEM - 17]}_{digest}"
        return self._root / f"{safe_key}.json"
