# src/cache/models.py — v1
"""Cache domain model: CacheEntry."""

from __future__ import annotations

import time

from pydantic import BaseModel

from lumbago.core.models import TagSet


class CacheEntry(BaseModel):
    """Tags previously obtained for one file identity.

    `timestamp` is epoch seconds at write time; it drives optional expiry.
    """

    tags: TagSet
    timestamp: float

    def is_expired(self, max_age_s: float, now: float | None = None) -> bool:
        """True when older than *max_age_s* (0 disables expiry)."""
        if max_age_s <= 0:
            return False
        current = time.time() if now is None else now
        return current - self.timestamp > max_age_s
