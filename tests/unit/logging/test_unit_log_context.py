# tests/unit/logging/test_unit_log_context.py — v1
"""Tests for logging/context.py — contextual logging variables."""

from __future__ import annotations

import asyncio

import pytest

from lumbago.logging.context import (
    clear_context,
    get_context,
    set_batch_context,
    set_item_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.batch_id is None
        assert ctx.item_id is None
        assert ctx.step is None

    def test_set_batch_context(self):
        set_batch_context("b1")
        assert get_context().batch_id == "b1"

    def test_set_item_context(self):
        set_item_context("item1", "analyze")
        ctx = get_context()
        assert ctx.item_id == "item1"
        assert ctx.step == "analyze"

    def test_as_dict_filters_none(self):
        set_batch_context("b1")
        d = get_context().as_dict()
        assert d == {"batch_id": "b1"}

    def test_clear(self):
        set_batch_context("b1")
        set_item_context("item1")
        clear_context()
        ctx = get_context()
        assert ctx.batch_id is None
        assert ctx.item_id is None

    @pytest.mark.asyncio
    async def test_tasks_do_not_share_item_context(self):
        async def work(item_id: str) -> str | None:
            set_item_context(item_id)
            await asyncio.sleep(0)
            return get_context().item_id

        results = await asyncio.gather(work("a"), work("b"))
        assert results == ["a", "b"]
        assert get_context().item_id is None
