# src/llm/adapters/openai_adapter.py — v2
"""OpenAI-compatible adapter implementing BaseLLMClient.

Uses the official openai SDK. Also serves Grok and other
OpenAI-compatible endpoints through `base_url`. No search grounding.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import BaseModel

from lumbago.llm.base_client import BaseLLMClient
from lumbago.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_REASONING_PREFIXES = ("o1", "o3", "o4", "gpt-5")


class OpenAIAdapter(BaseLLMClient):
    """OpenAI GPT adapter."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str = "",
        base_url: str | None = None,
        provider: str = "openai",
        **kwargs: Any,
    ):
        self._model = model
        self._api_key = api_key
        self._base_url = base_url or None
        self._provider = provider

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 8192,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
        use_search: bool = False,
        thinking_budget: int | None = None,
    ) -> LLMResponse:
        import openai

        client = openai.AsyncOpenAI(api_key=self._api_key, base_url=self._base_url)
        oai_messages: list[dict[str, Any]] = []
        if system:
            oai_messages.append({"role": "system", "content": system})
        for m in messages:
            oai_messages.append({"role": m.role, "content": m.content})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": oai_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format is not None:
            kwargs["response_format"] = {"type": "json_object"}
        if use_search:
            logger.debug("%s has no search grounding; answering from model knowledge", self._provider)
        if thinking_budget is not None and self._model.startswith(_REASONING_PREFIXES):
            kwargs["reasoning_effort"] = "high"
            kwargs.pop("temperature")
            kwargs["max_completion_tokens"] = kwargs.pop("max_tokens")

        t0 = time.monotonic()
        resp = await client.chat.completions.create(**kwargs)
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model,
            provider=self._provider,
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def supports_search(self) -> bool:
        return False

    @property
    def provider_name(self) -> str:
        return self._provider
