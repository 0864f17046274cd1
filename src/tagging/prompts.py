# src/tagging/prompts.py — v1
"""Prompt templates for batch tagging and smart playlists.

Templates live in tagging/prompts/*.txt and are formatted with
str.format(); literal braces in them are doubled.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from lumbago.core.models import BatchRequest, WorkItem

_PROMPT_DIR = Path(__file__).parent / "prompts"

_SEARCH_ON = (
    "Use Google Search to confirm details. Look for Beatport, Discogs or "
    "MusicBrainz data for BPM, key, energy and label."
)
_SEARCH_OFF = "Answer from your own knowledge; do not invent details you are unsure of."


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    return (_PROMPT_DIR / f"{name}.txt").read_text(encoding="utf-8")


def system_instruction() -> str:
    return load_prompt("system")


def format_hint(item: WorkItem) -> str:
    """Existing artist/title pair, if the file carries one."""
    tags = item.original_tags
    if not tags.artist:
        return ""
    return f"{tags.artist} - {tags.title or ''}".strip(" -")


def build_batch_prompt(request: BatchRequest, use_search: bool) -> str:
    """Prompt for one BatchRequest: folder context plus one line per key."""
    if request.folder != "root":
        folder_context = (
            f'These files are in folder: "{request.folder}". '
            "Use this to infer album and artist."
        )
    else:
        folder_context = "These files are loose/flat files."

    file_list = "\n".join(
        f'- Filename: "{key}" | Hints: {format_hint(item)}'
        for key, item in zip(request.keys, request.items)
    )
    return load_prompt("batch").format(
        folder_context=folder_context,
        count=len(request.items),
        search_instruction=_SEARCH_ON if use_search else _SEARCH_OFF,
        file_list=file_list,
    )


def build_playlist_prompt(user_prompt: str, library: list[dict[str, Any]]) -> str:
    return load_prompt("playlist").format(
        user_prompt=user_prompt.replace('"', "'"),
        library_json=json.dumps(library, ensure_ascii=False),
    )
