# tests/unit/core/test_unit_library.py — v1
"""Tests for core/library.py — item store, transitions and listeners."""

from __future__ import annotations

import pytest

from lumbago.core.library import WorkItemLibrary
from lumbago.core.models import ProcessingState


class TestWorkItemLibrary:
    def test_add_and_get(self, make_item):
        lib = WorkItemLibrary()
        item = lib.add(make_item())
        assert lib.get(item.id) == item
        assert item.id in lib
        assert len(lib) == 1

    def test_add_duplicate_id_rejected(self, make_item):
        item = make_item()
        lib = WorkItemLibrary([item])
        with pytest.raises(ValueError):
            lib.add(item)

    def test_items_keep_insertion_order(self, three_items):
        lib = WorkItemLibrary(three_items)
        assert [i.id for i in lib.items()] == [i.id for i in three_items]

    def test_transition_updates_store(self, library, three_items):
        target = three_items[0].id
        updated = library.transition(target, ProcessingState.PROCESSING)
        assert updated.state is ProcessingState.PROCESSING
        assert library.get(target).state is ProcessingState.PROCESSING
        assert library.by_state(ProcessingState.PROCESSING) == [updated]

    def test_transition_removed_item_is_ignored(self, library, three_items):
        target = three_items[0].id
        library.remove(target)
        assert library.transition(target, ProcessingState.PROCESSING) is None

    def test_change_listener(self, library, three_items):
        seen = []
        unsubscribe = library.subscribe(lambda item: seen.append(item.state))
        library.transition(three_items[0].id, ProcessingState.PROCESSING)
        unsubscribe()
        library.transition(three_items[1].id, ProcessingState.PROCESSING)
        assert seen == [ProcessingState.PROCESSING]

    def test_removal_listener(self, library, three_items):
        removed = []
        library.subscribe_removal(removed.append)
        library.remove(three_items[1].id)
        assert removed == [three_items[1].id]
        assert library.remove("missing") is None
        assert removed == [three_items[1].id]

    def test_failing_listener_does_not_break_mutation(self, library, three_items):
        def boom(_):
            raise RuntimeError("listener bug")

        library.subscribe(boom)
        library.subscribe_removal(boom)
        assert library.transition(three_items[0].id, ProcessingState.PROCESSING) is not None
        assert library.remove(three_items[0].id) is not None
