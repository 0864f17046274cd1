# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lumbago.core.errors import ConfigurationError

__all__ = ["ConfigurationError", "Settings", "load_settings"]


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDER ===
    llm_provider: str = "google"
    llm_model: str = "gemini-2.5-flash"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 8192

    # Provider API keys
    google_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str = ""
    grok_api_key: str = ""
    grok_base_url: str = "https://api.x.ai/v1"

    # === Remote calls ===
    llm_max_attempts: int = 3
    llm_retry_base_delay_s: float = 1.0
    llm_retry_jitter_ratio: float = 0.5
    llm_request_timeout_s: float = 120.0

    # === Analysis ===
    verify_with_search: bool = True
    batch_chunk_size: int = 20
    max_concurrent_requests: int = 3

    # === Smart playlist ===
    playlist_model: str = ""
    playlist_max_tracks: int = 4000
    playlist_thinking_budget: int = 32768

    # === Cache ===
    cache_enabled: bool = True
    cache_backend: Literal["memory", "json", "sqlite"] = "json"
    cache_root: Path = Path("~/.lumbago/cache")
    cache_max_age_days: float = 0.0

    # === Library ===
    library_scan_recursive: bool = True
    library_formats: str = "mp3,m4a,mp4,flac,wav,ogg,aac"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("llm_max_attempts", "max_concurrent_requests", "batch_chunk_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if not 0.0 <= self.llm_retry_jitter_ratio <= 0.5:
            errors.append("LLM_RETRY_JITTER_RATIO must be within [0, 0.5]")

        if self.llm_retry_base_delay_s < 0:
            errors.append("LLM_RETRY_BASE_DELAY_S must be >= 0")

        if self.llm_request_timeout_s <= 0:
            errors.append("LLM_REQUEST_TIMEOUT_S must be > 0")

        if self.cache_max_age_days < 0:
            errors.append("CACHE_MAX_AGE_DAYS must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def library_formats_list(self) -> list[str]:
        """Parse comma-separated audio extensions (without dots)."""
        return [
            f.strip().lower().lstrip(".")
            for f in self.library_formats.split(",")
            if f.strip()
        ]

    @property
    def cache_max_age_s(self) -> float:
        return self.cache_max_age_days * 86400.0

    @property
    def api_key(self) -> str:
        """API key for the configured provider."""
        if self.llm_provider == "google":
            return self.google_api_key
        if self.llm_provider == "grok":
            return self.grok_api_key
        return self.openai_api_key


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
