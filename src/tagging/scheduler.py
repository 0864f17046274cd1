# src/tagging/scheduler.py — v2
"""Work queue and concurrency scheduler for tag analysis.

Two modes share one library:

Single-item mode
    submit() appends ids to a pending queue and pumps it. The pump is a
    loop that dispatches while fewer than `max_concurrent` analyses are in
    flight; each finished task frees its slot and pumps again. Ids whose
    item was removed or is no longer PENDING are skipped.

Batch mode
    analyze_batch() runs one BatchAnalyzer call over many items. At most
    one batch is in flight: a call made while `is_batch_analyzing` is set
    is dropped (logged), not queued. The caller waits for the flag to
    clear before resubmitting.

Every item moved to PROCESSING is settled as SUCCESS or ERROR on every
exit path, including cancellation. Items removed from the library while
in flight are exempt (the library ignores transitions for them).

Runs on a single asyncio event loop; the queue, counters and batch flag
need no locking there.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Iterable

from lumbago.core.library import WorkItemLibrary
from lumbago.core.models import TERMINAL_STATES, AnalysisOutcome, ProcessingState, WorkItem
from lumbago.logging.context import set_batch_context, set_item_context
from lumbago.tagging.analyzer import BatchAnalyzer

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Analysis cancelled"
UNSETTLED_MESSAGE = "Analysis produced no result"


@dataclass(frozen=True)
class _QueuedItem:
    item_id: str
    force_refresh: bool = False


class AnalysisScheduler:
    """Owns the pending queue, in-flight tasks and the batch flag."""

    def __init__(
        self,
        library: WorkItemLibrary,
        analyzer: BatchAnalyzer,
        max_concurrent: int = 3,
        verify_with_search: bool | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._library = library
        self._analyzer = analyzer
        self._max_concurrent = max_concurrent
        self._verify_with_search = verify_with_search

        self._pending: deque[_QueuedItem] = deque()
        self._active: dict[str, asyncio.Task[None]] = {}
        self._idle = asyncio.Event()
        self._idle.set()

        self._batch_task: asyncio.Task[None] | None = None
        self._batch_ids: list[str] = []
        self._batch_cancel_requested = False
        self._is_batch_analyzing = False

        self._unsubscribe = library.subscribe_removal(self.cancel)

    # --- Observability ---

    @property
    def is_batch_analyzing(self) -> bool:
        return self._is_batch_analyzing

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    # --- Single-item mode ---

    def submit(self, item_ids: Iterable[str], force_refresh: bool = False) -> int:
        """Queue ids for single-item analysis. Returns the number queued.

        Must be called from within the running event loop; raises
        RuntimeError otherwise, before any item changes state.
        """
        asyncio.get_running_loop()
        added = 0
        for item_id in item_ids:
            self._pending.append(_QueuedItem(item_id, force_refresh))
            added += 1
        if added:
            self._idle.clear()
            logger.debug("Queued %d items (%d pending)", added, len(self._pending))
        self._pump()
        return added

    def retry(self, item_ids: Iterable[str], force_refresh: bool = True) -> int:
        """Move terminal items back to PENDING and queue them again."""
        asyncio.get_running_loop()
        requeued: list[str] = []
        for item_id in item_ids:
            item = self._library.get(item_id)
            if item is None or item.state not in TERMINAL_STATES:
                logger.debug("Not retrying %s (missing or not terminal)", item_id)
                continue
            self._library.transition(item_id, ProcessingState.PENDING)
            requeued.append(item_id)
        return self.submit(requeued, force_refresh=force_refresh)

    async def join(self) -> None:
        """Wait until the queue is drained and nothing is in flight."""
        await self._idle.wait()

    def _pump(self) -> None:
        while self._pending and len(self._active) < self._max_concurrent:
            queued = self._pending.popleft()
            item = self._library.get(queued.item_id)
            if item is None or item.state is not ProcessingState.PENDING:
                logger.debug("Skipping %s (removed or not pending)", queued.item_id)
                continue
            self._dispatch(item, queued.force_refresh)
        self._update_idle()

    def _dispatch(self, item: WorkItem, force_refresh: bool) -> None:
        processing = self._library.transition(item.id, ProcessingState.PROCESSING)
        if processing is None:
            return
        task = asyncio.create_task(
            self._run_single(processing, force_refresh),
            name=f"analyze-{item.id}",
        )
        self._active[item.id] = task
        task.add_done_callback(lambda t: self._on_slot_free(processing, t))

    async def _run_single(self, item: WorkItem, force_refresh: bool) -> None:
        set_item_context(item.id, step="single")
        try:
            outcome = await self._analyzer.analyze_one(
                item, force_refresh=force_refresh, verify_with_search=self._verify_with_search,
            )
        except asyncio.CancelledError:
            self._settle_error(item.id, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Analysis of %s failed: %s", item.display_name, message)
            self._settle_error(item.id, message)
            return
        self._apply(outcome)

    def _on_slot_free(self, dispatched: WorkItem, task: asyncio.Task[None]) -> None:
        self._active.pop(dispatched.id, None)
        # A task cancelled before its first step never reaches _run_single's
        # handlers; the library still holds the snapshot we dispatched.
        if task.cancelled() and self._library.get(dispatched.id) is dispatched:
            self._settle_error(dispatched.id, CANCELLED_MESSAGE)
        self._pump()

    def _update_idle(self) -> None:
        if not self._pending and not self._active:
            self._idle.set()
        else:
            self._idle.clear()

    # --- Batch mode ---

    async def analyze_batch(
        self,
        items: Iterable[WorkItem | str],
        force_refresh: bool = False,
        verify_with_search: bool | None = None,
    ) -> None:
        """Analyze items as one batch. No-op while another batch runs.

        Results are observed through the library (state, result,
        error_message); nothing is returned.
        """
        if self._is_batch_analyzing:
            logger.warning("Batch analysis already running; ignoring new request")
            return
        ids = [i if isinstance(i, str) else i.id for i in items]
        if not ids:
            return

        self._is_batch_analyzing = True
        self._batch_cancel_requested = False
        verify = self._verify_with_search if verify_with_search is None else verify_with_search
        task = asyncio.create_task(self._run_batch(ids, force_refresh, verify), name="analyze-batch")
        self._batch_task = task
        task.add_done_callback(self._on_batch_done)
        try:
            await task
        except asyncio.CancelledError:
            if not (task.cancelled() and self._batch_cancel_requested):
                raise
            logger.info("Batch analysis cancelled")

    def _on_batch_done(self, _task: asyncio.Task[None]) -> None:
        self._is_batch_analyzing = False
        self._batch_task = None
        self._batch_ids = []

    async def _run_batch(
        self, ids: list[str], force_refresh: bool, verify_with_search: bool | None
    ) -> None:
        batch_id = uuid.uuid4().hex[:8]
        set_batch_context(batch_id)

        targets = self._prepare_batch(ids)
        self._batch_ids = [t.id for t in targets]
        if not targets:
            logger.info("Batch %s: nothing to analyze", batch_id)
            return

        logger.info("Batch %s: analyzing %d items", batch_id, len(targets))
        try:
            outcomes = await self._analyzer.analyze(
                targets, force_refresh=force_refresh, verify_with_search=verify_with_search,
            )
        except asyncio.CancelledError:
            self._fail_unsettled(self._batch_ids, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Batch %s failed for %d items: %s", batch_id, len(targets), message)
            self._fail_unsettled(self._batch_ids, message)
            return

        for outcome in outcomes:
            self._apply(outcome)
        self._fail_unsettled(self._batch_ids, UNSETTLED_MESSAGE)

        failed = sum(1 for o in outcomes if not o.ok)
        logger.info(
            "Batch %s done: %d succeeded, %d failed", batch_id, len(outcomes) - failed, failed,
        )

    def _prepare_batch(self, ids: list[str]) -> list[WorkItem]:
        """Move every usable target to PROCESSING, in input order."""
        targets: list[WorkItem] = []
        seen: set[str] = set()
        for item_id in ids:
            if item_id in seen:
                continue
            seen.add(item_id)
            item = self._library.get(item_id)
            if item is None:
                logger.debug("Batch target %s is not in the library", item_id)
                continue
            if item.state is ProcessingState.PROCESSING:
                logger.warning("Batch target %s is already being analyzed", item.display_name)
                continue
            if item.state in TERMINAL_STATES:
                self._library.transition(item_id, ProcessingState.PENDING)
            processing = self._library.transition(item_id, ProcessingState.PROCESSING)
            if processing is not None:
                targets.append(processing)
        return targets

    # --- Cancellation ---

    def cancel(self, item_id: str) -> bool:
        """Cancel queued or in-flight single-item work for *item_id*.

        Batch members cannot be cancelled one by one; an item removed
        from the library mid-batch is simply left out of the results.
        """
        before = len(self._pending)
        self._pending = deque(q for q in self._pending if q.item_id != item_id)
        dequeued = len(self._pending) != before

        task = self._active.get(item_id)
        if task is not None and not task.done():
            task.cancel()
            logger.info("Cancelled in-flight analysis of %s", item_id)
            return True
        self._update_idle()
        return dequeued

    def cancel_batch(self) -> bool:
        """Cancel the running batch; its unsettled items become ERROR."""
        task = self._batch_task
        if task is None or task.done():
            return False
        self._batch_cancel_requested = True
        task.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel everything and wait for tasks to settle."""
        self._pending.clear()
        tasks = [t for t in self._active.values() if not t.done()]
        if self._batch_task is not None and not self._batch_task.done():
            self._batch_cancel_requested = True
            tasks.append(self._batch_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._unsubscribe()
        self._update_idle()

    # --- Settlement ---

    def _apply(self, outcome: AnalysisOutcome) -> None:
        if outcome.ok:
            self._settle(outcome.item_id, ProcessingState.SUCCESS, result=outcome.tags)
        else:
            self._settle(outcome.item_id, ProcessingState.ERROR, error=outcome.error)

    def _settle_error(self, item_id: str, message: str) -> None:
        self._settle(item_id, ProcessingState.ERROR, error=message)

    def _fail_unsettled(self, ids: list[str], message: str) -> None:
        for item_id in ids:
            self._settle_error(item_id, message)

    def _settle(self, item_id: str, to_state: ProcessingState, **kwargs: object) -> None:
        item = self._library.get(item_id)
        if item is None or item.state is not ProcessingState.PROCESSING:
            return
        self._library.transition(item_id, to_state, **kwargs)  # type: ignore[arg-type]
