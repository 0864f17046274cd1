# src/tagging/playlist.py — v1
"""Smart playlist generation over the library's best-known tags.

Uses the provider's thinking mode with JSON output. Ids the model
invents are dropped; any failure surfaces as PlaylistError.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from lumbago.config.settings import Settings
from lumbago.core.errors import PlaylistError
from lumbago.core.models import WorkItem
from lumbago.llm.base_client import BaseLLMClient
from lumbago.llm.models import Message
from lumbago.llm.retry import with_retry
from lumbago.tagging.prompts import build_playlist_prompt
from lumbago.tagging.response_parser import parse_json_object

logger = logging.getLogger(__name__)

DEFAULT_PLAYLIST_NAME = "Smart Playlist"


class PlaylistResponse(BaseModel):
    """Raw answer expected from the model."""

    playlistName: str = DEFAULT_PLAYLIST_NAME  # noqa: N815
    trackIds: list[str] = Field(default_factory=list)  # noqa: N815


class Playlist(BaseModel):
    """Generated playlist: a name and library item ids in play order."""

    name: str
    item_ids: list[str] = Field(default_factory=list)


def library_context(items: list[WorkItem], limit: int) -> list[dict[str, Any]]:
    """Compact per-track view sent to the model, capped at *limit* tracks."""
    context: list[dict[str, Any]] = []
    for item in items[:limit]:
        tags = item.best_tags
        entry = {
            "id": item.id,
            "artist": tags.artist or "Unknown",
            "title": tags.title or item.display_name,
            "genre": tags.genre,
            "bpm": tags.bpm,
            "mood": tags.mood,
            "energy": tags.energy,
            "key": tags.initial_key,
        }
        context.append({k: v for k, v in entry.items() if v is not None})
    return context


async def generate_smart_playlist(
    client: BaseLLMClient,
    items: list[WorkItem],
    user_prompt: str,
    settings: Settings | None = None,
) -> Playlist:
    """Ask the model for a playlist matching *user_prompt*.

    Raises:
        PlaylistError: If the prompt is empty, the call fails, or the
            answer cannot be parsed.
    """
    if not user_prompt.strip():
        raise PlaylistError("Playlist prompt is empty")
    if not items:
        raise PlaylistError("Library is empty")

    settings = settings or Settings()
    prompt = build_playlist_prompt(user_prompt, library_context(items, settings.playlist_max_tracks))

    async def attempt() -> str:
        response = await client.complete(
            messages=[Message(role="user", content=prompt)],
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            response_format=PlaylistResponse,
            thinking_budget=settings.playlist_thinking_budget,
        )
        return response.content

    try:
        text = await with_retry(
            attempt,
            max_attempts=settings.llm_max_attempts,
            base_delay_s=settings.llm_retry_base_delay_s,
            timeout_s=settings.llm_request_timeout_s,
            jitter_ratio=settings.llm_retry_jitter_ratio,
            label="smart-playlist",
        )
        raw = PlaylistResponse.model_validate(parse_json_object(text))
    except Exception as e:
        logger.error("Smart playlist generation failed: %s", e)
        raise PlaylistError("AI could not generate a playlist") from e

    known = {item.id for item in items}
    ids: list[str] = []
    for track_id in raw.trackIds:
        if track_id in known and track_id not in ids:
            ids.append(track_id)
    dropped = len(raw.trackIds) - len(ids)
    if dropped:
        logger.warning("Dropped %d unknown or repeated track ids from playlist", dropped)

    return Playlist(name=raw.playlistName.strip() or DEFAULT_PLAYLIST_NAME, item_ids=ids)
