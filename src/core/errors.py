# src/core/errors.py — v1
"""Exception hierarchy shared across the engine.

Remote failures are split into terminal (never retried) and transient
(retried with backoff). Cache failures never surface as exceptions.
"""

from __future__ import annotations


class LumbagoError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(LumbagoError):
    """Raised when configuration is missing or internally inconsistent."""


class ServiceError(LumbagoError):
    """Failure reported by, or while talking to, the AI service."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TerminalServiceError(ServiceError):
    """Authentication, authorization or validation failure. Not retryable."""


class TransientServiceError(ServiceError):
    """Network failure, 5xx or rate limiting. Retryable."""


class InvalidStateTransitionError(LumbagoError):
    """Raised when a work item is moved along an illegal edge."""

    def __init__(self, item_id: str, from_state: str, to_state: str) -> None:
        self.item_id = item_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal transition for item {item_id}: {from_state} -> {to_state}"
        )


class PlaylistError(LumbagoError):
    """Raised when the AI service cannot produce a playlist."""
