# tests/unit/llm/test_unit_llm_adapters.py — v1
"""Tests for the provider adapters — SDK calls are mocked."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from lumbago.llm.adapters.google_adapter import GoogleAdapter
from lumbago.llm.adapters.openai_adapter import OpenAIAdapter
from lumbago.llm.models import Message


class _Schema(BaseModel):
    name: str


def _openai_response(text: str):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


class TestOpenAIAdapter:
    @pytest.mark.asyncio
    async def test_complete(self):
        create = AsyncMock(return_value=_openai_response("[]"))
        fake_client = MagicMock()
        fake_client.chat.completions.create = create
        with patch("openai.AsyncOpenAI", return_value=fake_client) as ctor:
            adapter = OpenAIAdapter(model="gpt-4o", api_key="k", base_url="http://local")
            resp = await adapter.complete(
                [Message(role="user", content="hi")], system="sys", response_format=_Schema,
            )
        ctor.assert_called_once_with(api_key="k", base_url="http://local")
        kwargs = create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["response_format"] == {"type": "json_object"}
        assert resp.content == "[]"
        assert resp.input_tokens == 10
        assert resp.provider == "openai"

    @pytest.mark.asyncio
    async def test_thinking_on_reasoning_model(self):
        create = AsyncMock(return_value=_openai_response("{}"))
        fake_client = MagicMock()
        fake_client.chat.completions.create = create
        with patch("openai.AsyncOpenAI", return_value=fake_client):
            adapter = OpenAIAdapter(model="o3-mini", api_key="k")
            await adapter.complete([Message(role="user", content="hi")], thinking_budget=1024)
        kwargs = create.await_args.kwargs
        assert kwargs["reasoning_effort"] == "high"
        assert "temperature" not in kwargs
        assert "max_tokens" not in kwargs
        assert kwargs["max_completion_tokens"] == 8192


class TestGoogleAdapter:
    @pytest.mark.asyncio
    async def test_complete_with_search(self):
        resp = SimpleNamespace(
            text="[]",
            usage_metadata=SimpleNamespace(prompt_token_count=7, candidates_token_count=3),
            candidates=[SimpleNamespace(grounding_metadata={"chunks": 1})],
        )
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=resp)
        with patch("google.generativeai.configure") as configure, \
                patch("google.generativeai.GenerativeModel", return_value=model):
            adapter = GoogleAdapter(model="gemini-2.5-flash", api_key="g")
            out = await adapter.complete(
                [Message(role="user", content="hi")],
                system="sys",
                response_format=_Schema,
                use_search=True,
            )
        configure.assert_called_once_with(api_key="g")
        kwargs = model.generate_content_async.await_args.kwargs
        assert kwargs["tools"] == "google_search_retrieval"
        assert "response_mime_type" not in kwargs["generation_config"]
        assert out.grounded
        assert out.input_tokens == 7

    @pytest.mark.asyncio
    async def test_json_mode_without_search(self):
        resp = SimpleNamespace(text="{}", usage_metadata=None, candidates=[])
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=resp)
        with patch("google.generativeai.configure"), \
                patch("google.generativeai.GenerativeModel", return_value=model):
            out = await GoogleAdapter(api_key="g").complete(
                [Message(role="assistant", content="a")], response_format=_Schema,
            )
        args, kwargs = model.generate_content_async.await_args
        assert args[0] == [{"role": "model", "parts": [{"text": "a"}]}]
        assert "tools" not in kwargs
        assert kwargs["generation_config"]["response_mime_type"] == "application/json"
        assert not out.grounded

    @pytest.mark.asyncio
    async def test_blocked_response_gives_empty_text(self):
        class _Blocked:
            usage_metadata = None
            candidates = []

            @property
            def text(self):
                raise ValueError("no parts")

        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=_Blocked())
        with patch("google.generativeai.configure"), \
                patch("google.generativeai.GenerativeModel", return_value=model):
            out = await GoogleAdapter(api_key="g").complete([Message(role="user", content="x")])
        assert out.content == ""
