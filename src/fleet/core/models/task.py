"""Task records - backup work items and their status graph.

Manifesto:
    A task is one unit of work for one agent.  Its status graph is small
    but strict; every status write in the lifecycle engine is checked
    against ``TASK_VALID_TRANSITIONS`` first.

Tags:
    fleet-core, models, task, state-machine, retry

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from fleet.core.errors import InvalidTransitionError
from fleet.core.models.policy import DEFAULT_MAX_RETRIES, RetentionRules


class TaskType(str, Enum):
    """Kinds of work a policy schedules."""

    BACKUP = "backup"
    CHECK = "check"
    PRUNE = "prune"


class TaskStatus(str, Enum):
    """Task status: the canonical state machine.

    Valid transition graph::

        PENDING     → ASSIGNED
        ASSIGNED    → IN_PROGRESS | COMPLETED | FAILED | PENDING (retry)
        IN_PROGRESS → COMPLETED | FAILED | PENDING (retry)
        COMPLETED   → (terminal)
        FAILED      → (terminal)

    A failed attempt with retry budget left goes back to ``PENDING``
    with ``next_retry_at`` set, never through ``FAILED``.
    """

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


TASK_VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({
        TaskStatus.ASSIGNED,
    }),
    TaskStatus.ASSIGNED: frozenset({
        TaskStatus.IN_PROGRESS,
        TaskStatus.COMPLETED,  # result reported without an ack
        TaskStatus.FAILED,
        TaskStatus.PENDING,  # retry
    }),
    TaskStatus.IN_PROGRESS: frozenset({
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.PENDING,  # retry
    }),
    TaskStatus.COMPLETED: frozenset(),  # terminal
    TaskStatus.FAILED: frozenset(),  # terminal
}


def validate_task_transition(current: TaskStatus, target: TaskStatus) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_task_transition(TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS)
        >>> validate_task_transition(TaskStatus.COMPLETED, TaskStatus.PENDING)
        InvalidTransitionError: Invalid TaskStatus transition: completed → pending
    """
    allowed = TASK_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value, "TaskStatus")


@dataclass
class Task:
    """Task row (``tasks``).

    Repository, paths and retention are copies of the policy taken when
    the task was created; later policy edits do not reach it.
    """

    id: str = ""
    agent_id: str = ""
    policy_id: str | None = None
    task_type: TaskType = TaskType.BACKUP
    status: TaskStatus = TaskStatus.PENDING
    repository: str = ""
    include_paths: tuple[str, ...] = ()
    exclude_paths: tuple[str, ...] = ()
    retention: RetentionRules = field(default_factory=RetentionRules)
    scheduled_for: datetime | None = None
    assigned_at: datetime | None = None
    acknowledged_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    duration_seconds: float | None = None
    snapshot_id: str | None = None
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    next_retry_at: datetime | None = None
    last_error_category: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def retries_remaining(self) -> int:
        return max(0, self.max_retries - self.retry_count)

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)
