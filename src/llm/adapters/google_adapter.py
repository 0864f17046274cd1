# src/llm/adapters/google_adapter.py — v2
"""Google Gemini adapter implementing BaseLLMClient.

Uses google-generativeai SDK. Supports Google Search grounding, used to
verify batch tag results against Discogs/Beatport/MusicBrainz pages.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import BaseModel

from lumbago.llm.base_client import BaseLLMClient
from lumbago.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(self, model: str = "gemini-2.5-flash", api_key: str = "", **kwargs: Any):
        self._model = model
        self._api_key = api_key

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
        import google.generativeai as genai

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(
            self._model,
            system_instruction=system,
        )

        gen_config: dict[str, Any] = {
            "max_output_tokens": max_tokens,
            "temperature": temperature,
        }
        # JSON mime type is rejected when tools are attached; the prompt
        # carries the output schema instead.
        if response_format is not None and not use_search:
            gen_config["response_mime_type"] = "application/json"
        if thinking_budget is not None:
            # Not exposed by this SDK; 2.5 models think dynamically.
            logger.debug("thinking_budget=%d left to model default", thinking_budget)

        contents = []
        for m in messages:
            role = "model" if m.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": m.content}]})

        call_kwargs: dict[str, Any] = {"generation_config": gen_config}
        if use_search:
            call_kwargs["tools"] = "google_search_retrieval"

        t0 = time.monotonic()
        resp = await model.generate_content_async(contents, **call_kwargs)
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage_metadata", None)
        return LLMResponse(
            content=_response_text(resp),
            input_tokens=getattr(usage, "prompt_token_count", 0) if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) if usage else 0,
            model=self._model,
            provider="google",
            latency_ms=latency,
            grounded=_is_grounded(resp),
            raw_response=resp,
        )

    @property
    def supports_search(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "google"


def _response_text(resp: Any) -> str:
    """resp.text raises when the candidate has no text parts."""
    try:
        return resp.text or ""
    except ValueError:
        logger.warning("Gemini returned no text parts")
        return ""


def _is_grounded(resp: Any) -> bool:
    candidates = getattr(resp, "candidates", None) or []
    if not candidates:
        return False
    return bool(getattr(candidates[0], "grounding_metadata", None))
