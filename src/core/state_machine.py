# src/core/state_machine.py — v1
"""Per-item analysis state machine.

    PENDING ──> PROCESSING ──> SUCCESS
       ^                  └──> ERROR
       └──────── (resubmit) ───┘

Resubmission moves a terminal item back to PENDING; `result` and
`error_message` are never edited without passing through PROCESSING.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from lumbago.core.errors import InvalidStateTransitionError
from lumbago.core.models import ProcessingState, TagSet, WorkItem

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[ProcessingState, frozenset[ProcessingState]] = {
    ProcessingState.PENDING: frozenset({ProcessingState.PROCESSING}),
    ProcessingState.PROCESSING: frozenset(
        {ProcessingState.SUCCESS, ProcessingState.ERROR}
    ),
    ProcessingState.SUCCESS: frozenset({ProcessingState.PENDING}),
    ProcessingState.ERROR: frozenset({ProcessingState.PENDING}),
}


def can_transition(from_state: ProcessingState, to_state: ProcessingState) -> bool:
    """Check an edge against VALID_TRANSITIONS."""
    return to_state in VALID_TRANSITIONS.get(from_state, frozenset())


def transition(
    item: WorkItem,
    to_state: ProcessingState,
    *,
    result: TagSet | None = None,
    error: str | None = None,
) -> WorkItem:
    """Return a copy of *item* moved to *to_state*.

    Args:
        item: Current item snapshot.
        to_state: Target state.
        result: Merged tags, required when moving to SUCCESS.
        error: Error message when moving to ERROR.

    Raises:
        InvalidStateTransitionError: If the edge is not allowed.
        ValueError: If SUCCESS is requested without a result.
    """
    if not can_transition(item.state, to_state):
        raise InvalidStateTransitionError(item.id, item.state.value, to_state.value)

    update: dict[str, object] = {
        "state": to_state,
        "result": None,
        "error_message": None,
        "updated_at": datetime.now(timezone.utc),
    }
    if to_state is ProcessingState.SUCCESS:
        if result is None:
            raise ValueError(f"SUCCESS transition for {item.id} requires a result")
        update["result"] = result
    elif to_state is ProcessingState.ERROR:
        update["error_message"] = error or "Unknown error"

    logger.debug("Item %s: %s -> %s", item.id, item.state.value, to_state.value)
    return item.model_copy(update=update)
