# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides work item factories, an in-memory cache, fast-retry settings and
mock LLM clients. No network I/O — every AI call is mocked.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from lumbago.cache.memory_store import MemoryTagCache
from lumbago.config.settings import Settings
from lumbago.core.library import WorkItemLibrary
from lumbago.core.models import FileIdentity, TagSet, WorkItem
from lumbago.llm.models import LLMResponse

_FILENAME_RE = re.compile(r'- Filename: "(.+?)" \|')


def make_response(content: str) -> LLMResponse:
    """LLMResponse wrapping raw model text."""
    return LLMResponse(content=content, model="mock-model", provider="mock")


def prompt_keys(prompt: str) -> list[str]:
    """Correlation keys listed in a batch prompt."""
    return _FILENAME_RE.findall(prompt)


def echo_entries(prompt: str, **fields: Any) -> list[dict[str, Any]]:
    """One well-formed response entry per key found in *prompt*."""
    return [
        {"originalFilename": key, "title": f"Title of {key}", **fields}
        for key in prompt_keys(prompt)
    ]


def make_client(side_effect: Any = None, supports_search: bool = True) -> AsyncMock:
    """Mock BaseLLMClient."""
    client = AsyncMock()
    client.complete = AsyncMock(side_effect=side_effect)
    client.supports_search = supports_search
    client.provider_name = "mock"
    return client


def make_echo_client(delay: float = 0.0, **fields: Any) -> AsyncMock:
    """Client answering every batch prompt with one entry per file."""

    async def complete(*args: Any, **kwargs: Any) -> LLMResponse:
        if delay:
            await asyncio.sleep(delay)
        prompt = kwargs["messages"][-1].content
        return make_response(json.dumps(echo_entries(prompt, **fields)))

    return make_client(side_effect=complete)


async def wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until *predicate* holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


# === FIXTURES: Sample data ===


@pytest.fixture
def make_item() -> Callable[..., WorkItem]:
    """Factory for WorkItems in a folder (None = loose file)."""

    def _make(
        name: str = "track.mp3",
        folder: str | None = "Album",
        size: int = 4_000_000,
        mtime_ms: int = 1_700_000_000_000,
        **tags: Any,
    ) -> WorkItem:
        return WorkItem(
            identity=FileIdentity(name=name, size=size, mtime_ms=mtime_ms),
            relative_path=f"{folder}/{name}" if folder else name,
            original_tags=TagSet(**tags),
        )

    return _make


@pytest.fixture
def three_items(make_item) -> list[WorkItem]:
    """Three files of one album folder."""
    return [
        make_item("a.mp3", artist="Artist A"),
        make_item("b.mp3"),
        make_item("c.mp3", title="Known C"),
    ]


@pytest.fixture
def library(three_items) -> WorkItemLibrary:
    return WorkItemLibrary(three_items)


# === FIXTURES: Config / cache ===


@pytest.fixture
def settings() -> Settings:
    """Settings with instant retries and search verification off."""
    return Settings(
        _env_file=None,
        llm_retry_base_delay_s=0.0,
        llm_retry_jitter_ratio=0.0,
        llm_request_timeout_s=5.0,
        verify_with_search=False,
        cache_backend="memory",
        batch_chunk_size=20,
    )


@pytest.fixture
def cache() -> MemoryTagCache:
    return MemoryTagCache()


# === FIXTURES: Mock LLM ===


@pytest.fixture
def echo_client() -> AsyncMock:
    return make_echo_client()


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    """Temporary cache directory."""
    path = tmp_path / "cache"
    path.mkdir()
    return path
