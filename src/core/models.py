# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# === TAGS ===


DataOrigin = Literal["ai-inference", "google-search", "file-metadata", "cache"]


class TagSet(BaseModel):
    """ID3-style tag set.

    Serialized with camelCase aliases (the wire form used by the AI
    service); Python code uses the snake_case field names.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    artist: str | None = None
    title: str | None = None
    album: str | None = None
    year: str | None = None
    genre: str | None = None
    album_artist: str | None = None
    composer: str | None = None
    original_artist: str | None = None
    track_number: str | None = None
    disc_number: str | None = None
    mood: str | None = None
    comments: str | None = None
    copyright: str | None = None
    encoded_by: str | None = None
    album_cover_url: str | None = None

    # DJ / technical fields
    bpm: int | None = None
    initial_key: str | None = None
    energy: int | None = None
    danceability: int | None = None
    bitrate: int | None = None
    sample_rate: int | None = None

    # AI fields
    isrc: str | None = None
    record_label: str | None = None
    release_type: Literal["album", "single", "compilation", "ep", "remix"] | None = None
    confidence: Literal["high", "medium", "low"] | None = None
    data_origin: DataOrigin | None = None

    @field_validator("bpm", "energy", "danceability", "bitrate", "sample_rate", mode="before")
    @classmethod
    def _round_numbers(cls, v: Any) -> Any:
        if isinstance(v, float):
            return int(round(v))
        return v

    @field_validator("release_type", "confidence", mode="before")
    @classmethod
    def _lowercase_choice(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    def merged_with(self, overlay: TagSet) -> TagSet:
        """Overlay non-empty fields of *overlay* onto a copy of self.

        Empty strings and None never overwrite a known value.
        """
        data = self.model_dump(exclude_none=True)
        data.update(drop_empty(overlay.model_dump(exclude_none=True)))
        return TagSet(**data)

    def is_empty(self) -> bool:
        return not drop_empty(self.model_dump(exclude_none=True))

    def to_wire(self) -> dict[str, Any]:
        """camelCase dict without empty fields."""
        return drop_empty(self.model_dump(by_alias=True, exclude_none=True))


def drop_empty(data: dict[str, Any]) -> dict[str, Any]:
    """Remove None and blank-string values (the AI declined to answer)."""
    return {
        k: v for k, v in data.items()
        if v is not None and not (isinstance(v, str) and not v.strip())
    }


# === FILE IDENTITY ===


class FileIdentity(BaseModel):
    """Cheap proxy for content identity: name + size + mtime.

    Not a content hash. Two different files sharing all three values
    collide; this is an accepted trade-off.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    size: int
    mtime_ms: int

    @property
    def key(self) -> str:
        return f"{self.name}_{self.size}_{self.mtime_ms}"


# === WORK ITEMS ===


class ProcessingState(str, Enum):
    """Analysis lifecycle of one work item."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


TERMINAL_STATES = frozenset({ProcessingState.SUCCESS, ProcessingState.ERROR})


def _new_item_id() -> str:
    return uuid.uuid4().hex


class WorkItem(BaseModel):
    """One file's analysis unit.

    `result` is set only in SUCCESS, `error_message` only in ERROR. Use
    core.state_machine.transition() to move between states.
    """

    id: str = Field(default_factory=_new_item_id)
    identity: FileIdentity
    path: str | None = None
    relative_path: str | None = None
    original_tags: TagSet = Field(default_factory=TagSet)
    state: ProcessingState = ProcessingState.PENDING
    result: TagSet | None = None
    error_message: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_name(self) -> str:
        return self.identity.name

    @property
    def folder(self) -> str:
        """Parent folder of the relative path, or 'root' for loose files."""
        if not self.relative_path:
            return "root"
        parent = PurePosixPath(self.relative_path.replace("\\", "/")).parent
        return "root" if str(parent) in ("", ".") else str(parent)

    @property
    def best_tags(self) -> TagSet:
        return self.result or self.original_tags


# === BATCH ===


class BatchRequest(BaseModel):
    """Items submitted together in one AI call.

    `keys[i]` is the correlation key of `items[i]`; the AI echoes it in
    each response entry. Keys are unique within a request.
    """

    folder: str = "root"
    items: list[WorkItem]
    keys: list[str]

    def key_to_item(self) -> dict[str, WorkItem]:
        return dict(zip(self.keys, self.items))


class AnalysisOutcome(BaseModel):
    """Per-item result of an analysis call: tags or an error."""

    item_id: str
    tags: TagSet | None = None
    error: str | None = None
    source: Literal["cache", "ai"] | None = None

    @property
    def ok(self) -> bool:
        return self.tags is not None and self.error is None
