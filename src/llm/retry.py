# src/llm/retry.py — v1
"""Retrying wrapper for remote AI calls with exponential backoff.

Attempt `a` (0-based) that fails transiently is followed by a sleep of
`base_delay_s * 2**a` plus an optional jitter below half the base delay,
so waits strictly increase. Terminal errors (auth, validation) propagate
immediately. After the last attempt the last observed error is re-raised.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Literal, TypeVar

from lumbago.core.errors import ConfigurationError, TerminalServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorClass = Literal["terminal", "transient"]

TERMINAL_STATUS_CODES = frozenset({400, 401, 403, 404, 422})

# SDK exception class names that mean "fix your request or credentials".
# google.api_core.exceptions and openai both use these.
_TERMINAL_ERROR_NAMES = frozenset({
    "authenticationerror",
    "permissiondeniederror",
    "badrequesterror",
    "unprocessableentityerror",
    "notfounderror",
    "permissiondenied",
    "unauthenticated",
    "unauthorized",
    "forbidden",
    "invalidargument",
    "badrequest",
    "failedprecondition",
})


def _status_code(error: BaseException) -> int | None:
    """Read an HTTP status from the usual SDK attributes."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an exception as terminal (never retried) or transient."""
    if isinstance(error, (TerminalServiceError, ConfigurationError)):
        return "terminal"
    status = _status_code(error)
    if status is not None and status in TERMINAL_STATUS_CODES:
        return "terminal"
    if type(error).__name__.lower() in _TERMINAL_ERROR_NAMES:
        return "terminal"
    return "transient"


def compute_delay(
    attempt: int, base_delay_s: float, jitter_ratio: float = 0.0
) -> float:
    """Backoff delay after a failed attempt (0-based)."""
    delay = base_delay_s * (2 ** attempt)
    if jitter_ratio > 0:
        delay += random.uniform(0, base_delay_s * min(jitter_ratio, 0.5))  # noqa: S311
    return delay


async def with_retry(
    action: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay_s: float = 1.0,
    timeout_s: float | None = None,
    jitter_ratio: float = 0.0,
    label: str = "ai-call",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run *action* until it succeeds, fails terminally, or attempts run out.

    Args:
        action: Zero-argument coroutine factory; called once per attempt.
        max_attempts: Total attempts including the first.
        base_delay_s: Base of the exponential backoff.
        timeout_s: Per-attempt timeout. A timeout counts as transient.
        jitter_ratio: Extra random delay as a fraction of base_delay_s (<= 0.5).
        label: Name used in log lines.
        sleep: Awaitable sleep, injectable for tests.

    Raises:
        The terminal error, or the last transient error once attempts are
        exhausted. Cancellation is never retried.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: BaseException | None = None
    for attempt in range(max_attempts):
        try:
            if timeout_s is not None:
                return await asyncio.wait_for(action(), timeout=timeout_s)
            return await action()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            if classify_error(e) == "terminal":
                logger.error("%s failed with terminal error, not retrying: %s", label, e)
                raise

            if attempt + 1 >= max_attempts:
                break

            delay = compute_delay(attempt, base_delay_s, jitter_ratio)
            logger.warning(
                "%s — transient error (attempt %d/%d), retrying in %.1fs: %s",
                label, attempt + 1, max_attempts, delay, str(e) or type(e).__name__,
            )
            await sleep(delay)

    logger.error("%s failed after %d attempts: %s", label, max_attempts, last_error)
    assert last_error is not None
    raise last_error
