"""Application-level exception types.

Rate limiting has a single failure class of its own: configuration that cannot
produce a working limiter. Those errors are raised at construction time so a
misconfigured service fails on startup, not on the first request.

Counter store failures (network errors, timeouts) are deliberately *not*
wrapped here; they propagate from the store client unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    setting: str
    actual_value: Any
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationAppError(AppError):
    """Raised when a rate limiter or counter backend is misconfigured."""
