# src/logging/context.py — v1
"""Contextual logging support — attach batch_id, item_id, step to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per batch / per dispatched item. asyncio tasks copy the context on
# creation, so concurrent items do not see each other's values.
_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)
_item_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "item_id", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    batch_id: str | None = None
    item_id: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        batch_id=_batch_id.get(),
        item_id=_item_id.get(),
        step=_step.get(),
    )


def set_batch_context(batch_id: str) -> None:
    """Set batch-level context (called once per batch submission)."""
    _batch_id.set(batch_id)


def set_item_context(item_id: str, step: str | None = None) -> None:
    """Set item-level context (called per dispatched item)."""
    _item_id.set(item_id)
    _step.set(step)


def clear_context() -> None:
    """Reset all context variables."""
    _batch_id.set(None)
    _item_id.set(None)
    _step.set(None)
