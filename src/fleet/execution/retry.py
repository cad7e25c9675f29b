"""Task retry policy: backoff curve, retry decision, error categories.

Example:
    >>> from fleet.execution.retry import RetryBackoff
    >>> backoff = RetryBackoff(base_delay=5.0, multiplier=2.0)
    >>> [backoff.next_delay(n) for n in (1, 2, 3)]
    [5.0, 10.0, 20.0]

The curve is ``base_delay * multiplier ** (retry_count - 1)`` with no cap
and no jitter, so successive retries of one task always wait strictly
longer than the previous one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from fleet.core.models.task import Task
from fleet.core.timestamps import ensure_utc


class TaskErrorCategory(str, Enum):
    """Coarse classification of an agent-reported failure message."""

    NETWORK = "network"
    TRANSIENT = "transient"
    PERMISSION = "permission"
    REPOSITORY = "repository"
    UNKNOWN = "unknown"


_CATEGORY_MARKERS: tuple[tuple[TaskErrorCategory, tuple[str, ...]], ...] = (
    (TaskErrorCategory.NETWORK, ("timeout", "connection refused", "network")),
    (TaskErrorCategory.TRANSIENT, ("locked", "temporarily unavailable")),
    (TaskErrorCategory.PERMISSION, ("permission denied", "access denied", "forbidden")),
    (TaskErrorCategory.REPOSITORY, ("not found", "invalid repository")),
)

# Failures that will not go away by waiting
PERMANENT_ERROR_MARKERS = (
    "permission denied",
    "access denied",
    "unauthorized",
    "forbidden",
    "not found",
    "invalid repository",
    "authentication failed",
)


def categorize_error(message: str | None) -> TaskErrorCategory:
    """Classify *message* by substring; first matching category wins."""
    if not message:
        return TaskErrorCategory.UNKNOWN
    lowered = message.lower()
    for category, markers in _CATEGORY_MARKERS:
        if any(marker in lowered for marker in markers):
            return category
    return TaskErrorCategory.UNKNOWN


def is_permanent_error(message: str | None) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in PERMANENT_ERROR_MARKERS)


@dataclass(frozen=True)
class RetryBackoff:
    """Exponential retry delay.

    Attributes:
        base_delay: Seconds before the first retry (> 0)
        multiplier: Growth factor per retry (> 1)
    """

    base_delay: float = 5.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.multiplier <= 1:
            raise ValueError("multiplier must be greater than 1")

    def next_delay(self, retry_count: int) -> float:
        """Delay in seconds before retry number *retry_count* (1-based)."""
        if retry_count < 1:
            raise ValueError("retry_count starts at 1")
        return self.base_delay * (self.multiplier ** (retry_count - 1))

    def next_retry_at(self, now: datetime, retry_count: int) -> datetime:
        return ensure_utc(now) + timedelta(seconds=self.next_delay(retry_count))


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    reason: str


def should_retry_task(task: Task, error_message: str | None) -> RetryDecision:
    """Whether a failed attempt of *task* goes back to pending."""
    if task.retry_count >= task.max_retries:
        return RetryDecision(False, "max retries exhausted")
    if is_permanent_error(error_message):
        return RetryDecision(False, "permanent error")
    return RetryDecision(True, "retryable")


__all__ = [
    "PERMANENT_ERROR_MARKERS",
    "RetryBackoff",
    "RetryDecision",
    "TaskErrorCategory",
    "categorize_error",
    "is_permanent_error",
    "should_retry_task",
]
