# src/cache/sqlite_store.py — v2
"""SQLite-based tag cache (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3 — no external dependency.
Better than JSON files once the library holds many thousands of tracks.
The connection is opened on first use; a database that cannot be opened
turns every lookup into a miss.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from lumbago.cache.base_cache_store import BaseTagCache
from lumbago.cache.models import CacheEntry

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tag_cache (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    timestamp REAL NOT NULL
);
"""


class SqliteTagCache(BaseTagCache):
    """SQLite-backed cache store."""

    def __init__(self, db_path: Path | str, max_age_s: float = 0.0) -> None:
        super().__init__(max_age_s=max_age_s)
        self._db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None
        try:
            self._db()
        except (OSError, sqlite3.Error) as e:
            logger.warning("Cache database %s is unavailable, caching disabled: %s", self._db_path, e)

    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path))
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(_SCHEMA)
            except sqlite3.Error:
                conn.close()
                raise
            self._conn = conn
        return self._conn

    def _read(self, key: str) -> CacheEntry | None:
        row = self._db().execute(
            "SELECT data FROM tag_cache WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return CacheEntry.model_validate_json(row[0])

    def _write(self, key: str, entry: CacheEntry) -> None:
        conn = self._db()
        conn.execute(
            "INSERT OR REPLACE INTO tag_cache (key, data, timestamp) VALUES (?, ?, ?)",
            (key, entry.model_dump_json(by_alias=True), entry.timestamp),
        )
        conn.commit()

    def _delete(self, key: str) -> None:
        conn = self._db()
        conn.execute("DELETE FROM tag_cache WHERE key = ?", (key,))
        conn.commit()

    def _clear(self) -> None:
        conn = self._db()
        conn.execute("DELETE FROM tag_cache")
        conn.commit()

    def _count(self) -> int:
        return self._db().execute("SELECT COUNT(*) FROM tag_cache").fetchone()[0]

    def _purge(self, cutoff: float) -> int:
        conn = self._db()
        cursor = conn.execute("DELETE FROM tag_cache WHERE timestamp < ?", (cutoff,))
        conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection. Later calls degrade to misses."""
        if self._conn is not None:
            self._conn.close()
