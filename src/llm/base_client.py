# src/llm/base_client.py — v1
"""Abstract LLM client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from lumbago.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all LLM providers."""

    @abstractmethod
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
        """Text completion.

        Args:
            messages: Conversation turns.
            system: System instruction.
            max_tokens: Output token cap.
            temperature: Sampling temperature.
            response_format: Pydantic model describing a JSON response.
                Ignored when `use_search` is set, since providers do not
                combine tools with forced JSON output.
            use_search: Ground the answer with web search when the
                provider supports it.
            thinking_budget: Reasoning token budget for providers with a
                thinking mode. None leaves the provider default.
        """

    @property
    @abstractmethod
    def supports_search(self) -> bool:
        """Whether this provider can ground answers with web search."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (google, openai)."""
