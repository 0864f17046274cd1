# src/core/library.py — v1
"""In-memory library of work items.

The library is the only observable surface of the engine: listeners
receive every item snapshot after a state change, and removal events so
in-flight work for a removed item can be cancelled.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from lumbago.core.models import ProcessingState, TagSet, WorkItem
from lumbago.core.state_machine import transition

logger = logging.getLogger(__name__)

ChangeListener = Callable[[WorkItem], None]
RemovalListener = Callable[[str], None]


class WorkItemLibrary:
    """Ordered store of WorkItems keyed by id."""

    def __init__(self, items: Iterable[WorkItem] | None = None) -> None:
        self._items: dict[str, WorkItem] = {}
        self._change_listeners: list[ChangeListener] = []
        self._removal_listeners: list[RemovalListener] = []
        for item in items or ():
            self.add(item)

    # --- Queries ---

    def get(self, item_id: str) -> WorkItem | None:
        return self._items.get(item_id)

    def items(self) -> list[WorkItem]:
        return list(self._items.values())

    def by_state(self, state: ProcessingState) -> list[WorkItem]:
        return [i for i in self._items.values() if i.state is state]

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    # --- Mutations ---

    def add(self, item: WorkItem) -> WorkItem:
        """Add a new item. Ids are never reused."""
        if item.id in self._items:
            raise ValueError(f"Work item already in library: {item.id}")
        self._items[item.id] = item
        self._notify_change(item)
        return item

    def add_many(self, items: Iterable[WorkItem]) -> list[WorkItem]:
        return [self.add(i) for i in items]

    def remove(self, item_id: str) -> WorkItem | None:
        """Remove an item and notify removal listeners."""
        item = self._items.pop(item_id, None)
        if item is None:
            return None
        for listener in list(self._removal_listeners):
            try:
                listener(item_id)
            except Exception:
                logger.warning("Removal listener failed for %s", item_id, exc_info=True)
        return item

    def transition(
        self,
        item_id: str,
        to_state: ProcessingState,
        *,
        result: TagSet | None = None,
        error: str | None = None,
    ) -> WorkItem | None:
        """Move an item through the state machine.

        Returns None when the item is no longer in the library (removed
        mid-flight); such items are exempt from further transitions.
        """
        current = self._items.get(item_id)
        if current is None:
            logger.debug("Skipping transition for removed item %s", item_id)
            return None
        updated = transition(current, to_state, result=result, error=error)
        self._items[item_id] = updated
        self._notify_change(updated)
        return updated

    # --- Listeners ---

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._change_listeners.append(listener)
        return lambda: self._change_listeners.remove(listener)

    def subscribe_removal(self, listener: RemovalListener) -> Callable[[], None]:
        self._removal_listeners.append(listener)
        return lambda: self._removal_listeners.remove(listener)

    def _notify_change(self, item: WorkItem) -> None:
        for listener in list(self._change_listeners):
            try:
                listener(item)
            except Exception:
                logger.warning("Change listener failed for %s", item.id, exc_info=True)
