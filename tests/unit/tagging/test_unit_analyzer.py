# tests/unit/tagging/test_unit_analyzer.py — v1
"""Tests for tagging/analyzer.py — cache partition, batching, reconciliation."""

from __future__ import annotations

import itertools
import json

import pytest

from conftest import make_client, make_echo_client, make_response, prompt_keys
from lumbago.cache.fingerprint import cache_key
from lumbago.core.errors import TerminalServiceError, TransientServiceError
from lumbago.core.models import TagSet
from lumbago.tagging.analyzer import BatchAnalyzer


def _prompt(client, call=-1) -> str:
    return client.complete.await_args_list[call].kwargs["messages"][-1].content


def _fixed_client(entries):
    return make_client(side_effect=lambda *a, **k: make_response(json.dumps(entries)))


class TestCachePartition:
    @pytest.mark.asyncio
    async def test_cache_hit_avoids_network(self, three_items, cache, settings):
        for item in three_items:
            cache.put(cache_key(item.identity), TagSet(title=f"cached {item.display_name}"))
        client = make_echo_client()
        analyzer = BatchAnalyzer(client, cache=cache, settings=settings)

        outcomes = await analyzer.analyze(three_items)

        client.complete.assert_not_called()
        assert [o.tags.title for o in outcomes] == ["cached a.mp3", "cached b.mp3", "cached c.mp3"]
        assert all(o.source == "cache" for o in outcomes)
        assert all(o.tags.data_origin == "cache" for o in outcomes)

    @pytest.mark.asyncio
    async def test_only_misses_are_fetched(self, three_items, cache, settings):
        cache.put(cache_key(three_items[1].identity), TagSet(title="cached"))
        client = make_echo_client()
        analyzer = BatchAnalyzer(client, cache=cache, settings=settings)

        outcomes = await analyzer.analyze(three_items)

        assert client.complete.await_count == 1
        assert prompt_keys(_prompt(client)) == ["a.mp3", "c.mp3"]
        assert [o.source for o in outcomes] == ["ai", "cache", "ai"]

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self, three_items, cache, settings):
        for item in three_items:
            cache.put(cache_key(item.identity), TagSet(title="stale"))
        client = make_echo_client()
        analyzer = BatchAnalyzer(client, cache=cache, settings=settings)

        outcomes = await analyzer.analyze(three_items, force_refresh=True)

        assert client.complete.await_count == 1
        assert outcomes[0].tags.title == "Title of a.mp3"
        assert cache.get(cache_key(three_items[0].identity)).title == "Title of a.mp3"

    @pytest.mark.asyncio
    async def test_success_populates_cache(self, three_items, cache, settings):
        analyzer = BatchAnalyzer(make_echo_client(), cache=cache, settings=settings)
        await analyzer.analyze(three_items)
        assert len(cache) == 3

        second = make_echo_client()
        outcomes = await BatchAnalyzer(second, cache=cache, settings=settings).analyze(three_items)
        second.complete.assert_not_called()
        assert outcomes[2].tags.title == "Title of c.mp3"

    @pytest.mark.asyncio
    async def test_works_without_cache(self, three_items, settings):
        outcomes = await BatchAnalyzer(make_echo_client(), settings=settings).analyze(three_items)
        assert all(o.ok for o in outcomes)

    @pytest.mark.asyncio
    async def test_empty_input(self, settings):
        client = make_echo_client()
        assert await BatchAnalyzer(client, settings=settings).analyze([]) == []
        client.complete.assert_not_called()


class TestReconciliation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
    async def test_output_order_matches_input(self, three_items, settings, order):
        names = ["a.mp3", "b.mp3", "c.mp3"]
        entries = [{"originalFilename": names[i], "title": f"T{i}"} for i in order]
        analyzer = BatchAnalyzer(_fixed_client(entries), settings=settings)

        outcomes = await analyzer.analyze(three_items)

        assert len(outcomes) == 3
        assert [o.item_id for o in outcomes] == [i.id for i in three_items]
        assert [o.tags.title for o in outcomes] == ["T0", "T1", "T2"]

    @pytest.mark.asyncio
    async def test_partial_response(self, three_items, settings):
        entries = [{"originalFilename": "a.mp3", "title": "A"}, {"originalFilename": "c.mp3", "title": "C"}]
        outcomes = await BatchAnalyzer(_fixed_client(entries), settings=settings).analyze(three_items)

        assert outcomes[0].ok and outcomes[2].ok
        assert not outcomes[1].ok
        assert outcomes[1].error == "No data returned by AI for b.mp3"

    @pytest.mark.asyncio
    async def test_duplicate_key_first_wins(self, three_items, cache, settings):
        entries = [
            {"originalFilename": "a.mp3", "title": "First"},
            {"originalFilename": "a.mp3", "title": "Second"},
        ]
        analyzer = BatchAnalyzer(_fixed_client(entries), cache=cache, settings=settings)
        outcomes = await analyzer.analyze(three_items[:1])
        assert outcomes[0].tags.title == "First"
        assert cache.get(cache_key(three_items[0].identity)).title == "First"

    @pytest.mark.asyncio
    async def test_unparseable_response_fails_items_individually(self, three_items, settings):
        client = make_client(side_effect=lambda *a, **k: make_response("I could not find anything."))
        outcomes = await BatchAnalyzer(client, settings=settings).analyze(three_items)
        assert all(o.error.startswith("No data returned by AI") for o in outcomes)

    @pytest.mark.asyncio
    async def test_merge_keeps_known_values(self, make_item, settings):
        item = make_item("a.mp3", artist="Known Artist", title="Known Title")
        entries = [{"originalFilename": "a.mp3", "artist": "", "title": None, "album": "New Album", "bpm": 126}]
        outcome = (await BatchAnalyzer(_fixed_client(entries), settings=settings).analyze([item]))[0]
        assert outcome.tags.artist == "Known Artist"
        assert outcome.tags.title == "Known Title"
        assert outcome.tags.album == "New Album"
        assert outcome.tags.bpm == 126
        assert outcome.tags.data_origin == "ai-inference"

    @pytest.mark.asyncio
    async def test_search_marks_origin(self, three_items, settings):
        client = make_echo_client()
        outcomes = await BatchAnalyzer(client, settings=settings).analyze(three_items, verify_with_search=True)
        assert client.complete.await_args.kwargs["use_search"] is True
        assert outcomes[0].tags.data_origin == "google-search"

    @pytest.mark.asyncio
    async def test_search_disabled_when_unsupported(self, three_items, settings):
        client = make_echo_client()
        client.supports_search = False
        outcomes = await BatchAnalyzer(client, settings=settings).analyze(three_items, verify_with_search=True)
        assert client.complete.await_args.kwargs["use_search"] is False
        assert outcomes[0].tags.data_origin == "ai-inference"


class TestBatching:
    @pytest.mark.asyncio
    async def test_one_request_per_folder(self, make_item, settings):
        items = [make_item("1.mp3", folder="A"), make_item("2.mp3", folder="B"), make_item("3.mp3", folder="A")]
        client = make_echo_client()
        outcomes = await BatchAnalyzer(client, settings=settings).analyze(items)
        assert client.complete.await_count == 2
        assert [o.item_id for o in outcomes] == [i.id for i in items]
        assert all(o.ok for o in outcomes)

    @pytest.mark.asyncio
    async def test_chunk_size(self, make_item, settings):
        items = [make_item(f"{n}.mp3") for n in range(5)]
        client = make_echo_client()
        analyzer = BatchAnalyzer(client, settings=settings.model_copy(update={"batch_chunk_size": 2}))
        await analyzer.analyze(items)
        assert client.complete.await_count == 3
        assert analyzer.calls_made == 3

    @pytest.mark.asyncio
    async def test_same_name_in_one_folder(self, make_item, settings):
        items = [make_item("x.mp3", size=1), make_item("x.mp3", size=2)]
        client = make_echo_client()
        outcomes = await BatchAnalyzer(client, settings=settings).analyze(items)
        assert [o.tags.title for o in outcomes] == ["Title of x.mp3", "Title of x.mp3 [2]"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_terminal_error_propagates_without_retry(self, three_items, settings):
        client = make_client(side_effect=TerminalServiceError("API key invalid", status_code=401))
        with pytest.raises(TerminalServiceError, match="API key invalid"):
            await BatchAnalyzer(client, settings=settings).analyze(three_items)
        assert client.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_exhaustion_fails_chunk_only(self, make_item, settings):
        items = [make_item("1.mp3", folder="A"), make_item("2.mp3", folder="B")]
        echo = make_echo_client()

        async def flaky(*args, **kwargs):
            if "1.mp3" in kwargs["messages"][-1].content:
                raise TransientServiceError("503 Service Unavailable", status_code=503)
            return await echo.complete(*args, **kwargs)

        client = make_client(side_effect=flaky)
        outcomes = await BatchAnalyzer(client, settings=settings).analyze(items)

        assert outcomes[0].error == "503 Service Unavailable"
        assert outcomes[1].ok
        assert client.complete.await_count == settings.llm_max_attempts + 1

    @pytest.mark.asyncio
    async def test_backoff_between_attempts(self, three_items, settings):
        delays: list[float] = []

        async def sleep(delay):
            delays.append(delay)

        client = make_client(side_effect=ConnectionError("reset"))
        analyzer = BatchAnalyzer(
            client, settings=settings.model_copy(update={"llm_retry_base_delay_s": 1.0}), sleep=sleep,
        )
        outcomes = await analyzer.analyze(three_items)
        assert client.complete.await_count == 3
        assert delays == [1.0, 2.0]
        assert all(o.error == "reset" for o in outcomes)


class TestAnalyzeOne:
    @pytest.mark.asyncio
    async def test_single_item(self, three_items, settings):
        outcome = await BatchAnalyzer(make_echo_client(), settings=settings).analyze_one(three_items[1])
        assert outcome.item_id == three_items[1].id
        assert outcome.tags.title == "Title of b.mp3"
