# src/cache/cache_factory.py — v1
"""Factory for tag cache instantiation."""

from __future__ import annotations

from lumbago.cache.base_cache_store import BaseTagCache
from lumbago.config.settings import Settings


def create_tag_cache(settings: Settings | None = None) -> BaseTagCache:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseTagCache implementation.
    """
    if settings is None:
        from lumbago.cache.memory_store import MemoryTagCache
        return MemoryTagCache()

    backend = settings.cache_backend
    max_age_s = settings.cache_max_age_s

    if backend == "memory":
        from lumbago.cache.memory_store import MemoryTagCache
        return MemoryTagCache(max_age_s=max_age_s)

    if backend == "json":
        from lumbago.cache.json_store import JsonTagCache
        return JsonTagCache(cache_root=settings.cache_root, max_age_s=max_age_s)

    if backend == "sqlite":
        from lumbago.cache.sqlite_store import SqliteTagCache
        db_path = settings.cache_root.expanduser() / "lumbago_cache.db"
        return SqliteTagCache(db_path=db_path, max_age_s=max_age_s)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
