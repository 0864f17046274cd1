# src/tagging/analyzer.py — v1
"""Batch analyzer: cache partition, batched AI calls, reconciliation.

analyze() returns exactly one AnalysisOutcome per input item, in input
order, whatever order the service answers in:
  1. Unless force_refresh, items with a cache hit are served from cache.
  2. The rest are grouped by folder and chunked into BatchRequests.
  3. Each request goes through the retry wrapper to the AI service.
  4. Entries are reconciled by correlation key (see reconciler).
  5. Items without an accepted entry fail individually.
  6. Merged results are written back to the cache.

A terminal service error (auth, validation) aborts the whole call. A
transient error that survives all retries fails only the items of that
request; later requests still run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from lumbago.cache.base_cache_store import BaseTagCache
from lumbago.cache.fingerprint import cache_key
from lumbago.config.settings import Settings
from lumbago.core.models import AnalysisOutcome, BatchRequest, DataOrigin, WorkItem
from lumbago.llm.base_client import BaseLLMClient
from lumbago.llm.models import Message
from lumbago.llm.retry import classify_error, with_retry
from lumbago.logging.context import set_item_context
from lumbago.tagging.prompts import build_batch_prompt, system_instruction
from lumbago.tagging.reconciler import build_requests, merge_result, reconcile
from lumbago.tagging.response_parser import parse_json_array

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data returned by AI for {key}"


class BatchAnalyzer:
    """Turns WorkItems into tag outcomes via cache and AI service."""

    def __init__(
        self,
        client: BaseLLMClient,
        cache: BaseTagCache | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._cache = cache
        self._settings = settings or Settings()
        self._sleep = sleep
        self.calls_made = 0

    async def analyze(
        self,
        items: list[WorkItem],
        force_refresh: bool = False,
        verify_with_search: bool | None = None,
    ) -> list[AnalysisOutcome]:
        """Analyze *items*; output is aligned index-for-index with the input.

        Raises:
            The terminal service error, if the AI service rejects a request
            for auth/config/validation reasons.
        """
        if not items:
            return []

        outcomes: dict[str, AnalysisOutcome] = {}
        to_fetch: list[WorkItem] = []

        for item in items:
            cached = None if force_refresh else self._cache_get(item)
            if cached is not None:
                outcomes[item.id] = AnalysisOutcome(
                    item_id=item.id,
                    tags=item.original_tags.merged_with(cached),
                    source="cache",
                )
            else:
                to_fetch.append(item)

        if outcomes:
            logger.info("Cache served %d of %d files", len(outcomes), len(items))

        if to_fetch:
            use_search = self._resolve_search(verify_with_search)
            requests = build_requests(to_fetch, self._settings.batch_chunk_size)
            logger.info(
                "Analyzing %d files in %d request(s) (search=%s)",
                len(to_fetch), len(requests), use_search,
            )
            for request in requests:
                outcomes.update(await self._run_request(request, use_search))

        return [outcomes[item.id] for item in items]

    async def analyze_one(
        self,
        item: WorkItem,
        force_refresh: bool = False,
        verify_with_search: bool | None = None,
    ) -> AnalysisOutcome:
        """Single-file mode: a batch of one."""
        set_item_context(item.id, step="analyze")
        outcomes = await self.analyze([item], force_refresh, verify_with_search)
        return outcomes[0]

    # --- Internals ---

    async def _run_request(
        self, request: BatchRequest, use_search: bool
    ) -> dict[str, AnalysisOutcome]:
        try:
            entries = await self._call_service(request, use_search)
        except Exception as e:
            if classify_error(e) == "terminal":
                raise
            message = str(e) or type(e).__name__
            logger.error(
                "Request for %d files in %s failed: %s",
                len(request.items), request.folder, message,
            )
            return {
                item.id: AnalysisOutcome(item_id=item.id, error=message, source="ai")
                for item in request.items
            }

        reconciliation = reconcile(request, entries)
        origin: DataOrigin = "google-search" if use_search else "ai-inference"
        keys = dict(zip((i.id for i in request.items), request.keys))

        results: dict[str, AnalysisOutcome] = {}
        for item in request.items:
            ai_tags = reconciliation.matched.get(item.id)
            if ai_tags is None:
                results[item.id] = AnalysisOutcome(
                    item_id=item.id,
                    error=NO_DATA_MESSAGE.format(key=keys[item.id]),
                    source="ai",
                )
                continue
            merged = merge_result(item, ai_tags, origin)
            if self._cache is not None:
                self._cache.put(cache_key(item.identity), merged)
            results[item.id] = AnalysisOutcome(item_id=item.id, tags=merged, source="ai")
        return results

    async def _call_service(self, request: BatchRequest, use_search: bool) -> list[Any]:
        prompt = build_batch_prompt(request, use_search)
        settings = self._settings

        async def attempt() -> str:
            self.calls_made += 1
            response = await self._client.complete(
                messages=[Message(role="user", content=prompt)],
                system=system_instruction(),
                max_tokens=settings.llm_max_tokens,
                temperature=settings.llm_temperature,
                use_search=use_search,
            )
            return response.content

        text = await with_retry(
            attempt,
            max_attempts=settings.llm_max_attempts,
            base_delay_s=settings.llm_retry_base_delay_s,
            timeout_s=settings.llm_request_timeout_s,
            jitter_ratio=settings.llm_retry_jitter_ratio,
            label=f"batch[{request.folder}]",
            sleep=self._sleep,
        )
        return parse_json_array(text)

    def _cache_get(self, item: WorkItem):
        if self._cache is None:
            return None
        return self._cache.get(cache_key(item.identity))

    def _resolve_search(self, verify_with_search: bool | None) -> bool:
        wanted = self._settings.verify_with_search if verify_with_search is None else verify_with_search
        if wanted and not self._client.supports_search:
            logger.debug("%s cannot search; verification disabled", self._client.provider_name)
            return False
        return wanted
