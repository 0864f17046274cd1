# src/api/facade.py — v2
"""Public API facade — one object wiring library, cache, client and scheduler.

Usage:
    from lumbago.api.facade import TaggingEngine
    engine = TaggingEngine.from_settings(settings)
    engine.add_directory(Path("~/Music"))
    await engine.analyze_batch(engine.library.items())

Callers observe progress through `engine.library` (state, result,
error_message) and gate UI affordances on `engine.is_batch_analyzing`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from lumbago.cache.base_cache_store import BaseTagCache
from lumbago.config.settings import Settings
from lumbago.core.library import WorkItemLibrary
from lumbago.core.models import WorkItem
from lumbago.tagging.analyzer import BatchAnalyzer
from lumbago.tagging.scheduler import AnalysisScheduler

if TYPE_CHECKING:
    from lumbago.library.tag_reader import BaseTagReader
    from lumbago.llm.base_client import BaseLLMClient
    from lumbago.tagging.playlist import Playlist

logger = logging.getLogger(__name__)


class TaggingEngine:
    """AI tagging orchestration engine."""

    def __init__(
        self,
        client: BaseLLMClient,
        settings: Settings | None = None,
        cache: BaseTagCache | None = None,
        library: WorkItemLibrary | None = None,
        tag_reader: BaseTagReader | None = None,
        playlist_client: BaseLLMClient | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._client = client
        self._playlist_client = playlist_client or client
        self._cache = cache
        self._tag_reader = tag_reader
        self.library = library or WorkItemLibrary()
        self.analyzer = BatchAnalyzer(client, cache=cache, settings=self._settings)
        self.scheduler = AnalysisScheduler(
            self.library,
            self.analyzer,
            max_concurrent=self._settings.max_concurrent_requests,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        tag_reader: BaseTagReader | None = None,
    ) -> TaggingEngine:
        """Build client(s) and cache from configuration."""
        from lumbago.cache.cache_factory import create_tag_cache
        from lumbago.llm.client_factory import create_llm_client

        settings = settings or Settings()
        client = create_llm_client(settings.llm_provider, settings.llm_model, settings)
        playlist_client = None
        if settings.playlist_model:
            playlist_client = create_llm_client(settings.llm_provider, settings.playlist_model, settings)
        cache = create_tag_cache(settings) if settings.cache_enabled else None
        return cls(
            client,
            settings=settings,
            cache=cache,
            tag_reader=tag_reader,
            playlist_client=playlist_client,
        )

    # --- Library ---

    def add_directory(self, directory: Path, recursive: bool | None = None) -> list[WorkItem]:
        """Scan *directory* and add every audio file as a PENDING item."""
        from lumbago.library.scanner import LibraryScanner

        scanner = LibraryScanner(settings=self._settings, tag_reader=self._tag_reader)
        items = scanner.scan(directory, recursive=recursive)
        return self.library.add_many(items)

    def remove(self, item_id: str) -> WorkItem | None:
        """Remove an item; in-flight single-item work for it is cancelled."""
        return self.library.remove(item_id)

    # --- Analysis ---

    @property
    def is_batch_analyzing(self) -> bool:
        return self.scheduler.is_batch_analyzing

    async def analyze_batch(
        self,
        items: Iterable[WorkItem | str],
        force_refresh: bool = False,
        verify_with_search: bool | None = None,
    ) -> None:
        await self.scheduler.analyze_batch(
            items, force_refresh=force_refresh, verify_with_search=verify_with_search,
        )

    def submit(self, item_ids: Iterable[str], force_refresh: bool = False) -> int:
        return self.scheduler.submit(item_ids, force_refresh=force_refresh)

    def retry(self, item_ids: Iterable[str], force_refresh: bool = True) -> int:
        return self.scheduler.retry(item_ids, force_refresh=force_refresh)

    async def join(self) -> None:
        await self.scheduler.join()

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()

    # --- Playlists ---

    async def smart_playlist(self, user_prompt: str) -> Playlist:
        from lumbago.tagging.playlist import generate_smart_playlist

        return await generate_smart_playlist(
            self._playlist_client, self.library.items(), user_prompt, settings=self._settings,
        )

    # --- Cache ---

    def clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()
            logger.info("AI cache cleared")
