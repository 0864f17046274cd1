# src/llm/client_factory.py — v3
"""Factory: instantiate LLM client from provider name.

Called by the engine facade and the CLI with the configured provider.
"""

from __future__ import annotations

import importlib
import logging

from lumbago.config.settings import Settings
from lumbago.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "google": "lumbago.llm.adapters.google_adapter.GoogleAdapter",
    "openai": "lumbago.llm.adapters.openai_adapter.OpenAIAdapter",
    "grok": "lumbago.llm.adapters.openai_adapter.OpenAIAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (google, openai, grok).
        model: Model name (e.g. gemini-2.5-flash).
        settings: Application settings (for API keys and endpoints).
        **kwargs: Additional provider-specific arguments.

    Returns:
        Configured BaseLLMClient instance.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    class_path = _PROVIDER_REGISTRY[provider]
    adapter_cls = _import_class(class_path)

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model

    if settings is not None:
        if provider == "google":
            init_kwargs.setdefault("api_key", settings.google_api_key)
        elif provider == "openai":
            init_kwargs.setdefault("api_key", settings.openai_api_key)
            init_kwargs.setdefault("base_url", settings.openai_base_url or None)
        elif provider == "grok":
            init_kwargs.setdefault("api_key", settings.grok_api_key)
            init_kwargs.setdefault("base_url", settings.grok_base_url)
    if provider == "grok":
        init_kwargs.setdefault("provider", "grok")

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseLLMClient.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s → %s", name, class_path)


def available_providers() -> list[str]:
    return sorted(_PROVIDER_REGISTRY)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
