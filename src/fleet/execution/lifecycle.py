"""Task lifecycle engine: claim, acknowledge, result, backoff.

Manifesto:
    Many agents poll the same ``tasks`` table.  Every status change is
    a guarded read-check-write inside one write transaction, so a task is
    handed out once, acknowledged once, and completed once no matter how
    the agents interleave.

    Failure is a normal state transition here.  A failed attempt with
    budget left goes back to ``pending`` with ``next_retry_at`` in the
    future; an exhausted or permanently failing task becomes ``failed``.
    Neither raises.

Architecture:
    ::

        claim_tasks(agent)            pending ──► assigned
        acknowledge(agent, task)      assigned ──► in-progress
        submit_result(agent, task, r)
            success                   assigned|in-progress ──► completed
            failure, budget left      assigned|in-progress ──► pending (+backoff)
            failure, exhausted        assigned|in-progress ──► failed
        record_heartbeat(agent)       last_seen_at, refresh backoff aggregate

Tags:
    fleet-core, execution, lifecycle, claim, retry, backoff

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fleet.core.database import transaction
from fleet.core.dialect import Dialect
from fleet.core.errors import AgentNotFoundError, InvalidTransitionError, TaskNotFoundError
from fleet.core.logging import get_logger
from fleet.core.models.agent import Agent
from fleet.core.models.task import Task, TaskStatus, validate_task_transition
from fleet.core.protocols import Connection
from fleet.core.repositories.agents import AgentRepository
from fleet.core.repositories.tasks import TaskRepository
from fleet.core.timestamps import Clock, ensure_utc, to_iso8601, utc_now
from fleet.execution.retry import RetryBackoff, categorize_error, should_retry_task
from fleet.observability.metrics import FleetMetrics

logger = get_logger(__name__)

DEFAULT_CLAIM_LIMIT = 10

_SUCCESS = frozenset({"success", "completed"})
_FAILURE = frozenset({"failure", "failed"})

ACKNOWLEDGED = {"status": "acknowledged", "message": "Task acknowledged and started"}


@dataclass(frozen=True)
class TaskResult:
    """What an agent reports when a task attempt ends."""

    status: str  # success | completed | failure | failed
    error_message: str | None = None
    duration_seconds: float | None = None
    snapshot_id: str | None = None

    def __post_init__(self) -> None:
        if self.status not in _SUCCESS | _FAILURE:
            raise ValueError(f"unknown result status: {self.status!r}")

    @property
    def succeeded(self) -> bool:
        return self.status in _SUCCESS


@dataclass(frozen=True)
class BackoffTaskInfo:
    task_id: str
    task_type: str
    retry_count: int
    max_retries: int
    next_retry_at: datetime | None
    error_category: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_type": self.task_type,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "next_retry_at": to_iso8601(self.next_retry_at),
            "error_category": self.error_category,
        }


@dataclass(frozen=True)
class AgentBackoff:
    """Backing-off tasks of one agent."""

    agent_id: str
    tasks_in_backoff: int
    earliest_retry_at: datetime | None
    tasks: list[BackoffTaskInfo] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "tasks_in_backoff": self.tasks_in_backoff,
            "earliest_retry_at": to_iso8601(self.earliest_retry_at),
            "tasks": [t.to_dict() for t in self.tasks],
        }


class TaskLifecycle:
    """Agent-facing task operations over the ``tasks`` and ``agents`` tables.

    Example:
        >>> lifecycle = TaskLifecycle(conn)
        >>> tasks = lifecycle.claim_tasks("agent-1")
        >>> lifecycle.acknowledge("agent-1", tasks[0].id)
        >>> lifecycle.submit_result("agent-1", tasks[0].id, TaskResult("success"))
    """

    def __init__(
        self,
        conn: Connection,
        *,
        dialect: Dialect | None = None,
        backoff: RetryBackoff | None = None,
        clock: Clock = utc_now,
        claim_limit: int = DEFAULT_CLAIM_LIMIT,
        exporter: FleetMetrics | None = None,
    ) -> None:
        self.conn = conn
        self.dialect = dialect
        self.tasks = TaskRepository(conn, dialect)
        self.agents = AgentRepository(conn, dialect)
        self.backoff = backoff or RetryBackoff()
        self.claim_limit = claim_limit
        self._clock = clock
        self._exporter = exporter

    def _now(self, now: datetime | None) -> datetime:
        return ensure_utc(now) if now is not None else self._clock()

    # === Claim ===

    def claim_tasks(
        self,
        agent_id: str,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[Task]:
        """Hand up to *limit* runnable pending tasks to *agent_id*.

        Tasks still backing off (``next_retry_at > now``) are skipped.  A
        non-positive *limit* falls back to the configured default.
        """
        now = self._now(now)
        if limit is None or limit <= 0:
            limit = self.claim_limit

        claimed: list[Task] = []
        with transaction(self.conn, self.dialect):
            for task in self.tasks.select_claimable(agent_id, now, limit):
                if not self.tasks.mark_assigned(task.id, now):
                    continue
                task.status = TaskStatus.ASSIGNED
                task.assigned_at = now
                claimed.append(task)

        if claimed:
            logger.info("tasks_claimed", agent_id=agent_id, count=len(claimed))
            if self._exporter is not None:
                self._exporter.tasks_claimed.inc(len(claimed))
        return claimed

    # === Acknowledge ===

    def acknowledge(
        self,
        agent_id: str,
        task_id: str,
        now: datetime | None = None,
    ) -> dict[str, str]:
        """Move an assigned task to in-progress.

        Re-acknowledging an in-progress task returns the same response and
        leaves its timestamps alone.

        Raises:
            TaskNotFoundError: Unknown task, or owned by another agent.
            InvalidTransitionError: Task is pending, completed or failed.
        """
        now = self._now(now)
        with transaction(self.conn, self.dialect):
            task = self.tasks.get_for_agent(task_id, agent_id)
            if task is None:
                raise TaskNotFoundError(task_id, agent_id)
            if task.status == TaskStatus.IN_PROGRESS:
                return dict(ACKNOWLEDGED)

            validate_task_transition(task.status, TaskStatus.IN_PROGRESS)
            ts = to_iso8601(now)
            self.tasks.update_fields(
                task_id,
                {
                    "status": TaskStatus.IN_PROGRESS.value,
                    "acknowledged_at": ts,
                    "started_at": ts,
                },
                expected_status=task.status,
            )

        logger.info("task_acknowledged", agent_id=agent_id, task_id=task_id)
        return dict(ACKNOWLEDGED)

    # === Results ===

    def submit_result(
        self,
        agent_id: str,
        task_id: str,
        result: TaskResult,
        now: datetime | None = None,
    ) -> dict[str, str]:
        """Record the outcome of a task attempt.

        Raises:
            TaskNotFoundError: Unknown task, or owned by another agent.
            InvalidTransitionError: Task is not assigned or in progress.
        """
        now = self._now(now)
        with transaction(self.conn, self.dialect):
            task = self.tasks.get_for_agent(task_id, agent_id)
            if task is None:
                raise TaskNotFoundError(task_id, agent_id)

            if task.status not in (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS):
                target = TaskStatus.COMPLETED if result.succeeded else TaskStatus.FAILED
                raise InvalidTransitionError(task.status.value, target.value, "TaskStatus")

            if result.succeeded:
                target, updates = self._success_updates(now)
            else:
                target, updates = self._failure_updates(task, result, now)

            validate_task_transition(task.status, target)
            updates["duration_seconds"] = result.duration_seconds
            updates["snapshot_id"] = result.snapshot_id
            self.tasks.update_fields(task_id, updates, expected_status=task.status)

        outcome = "retry" if target == TaskStatus.PENDING else target.value
        logger.info(
            "task_result_recorded",
            agent_id=agent_id,
            task_id=task_id,
            outcome=outcome,
            retry_count=updates.get("retry_count", task.retry_count),
            next_retry_at=updates.get("next_retry_at"),
        )
        if self._exporter is not None:
            self._exporter.task_results.labels(outcome=outcome).inc()
        return {"status": "ok"}

    def _success_updates(self, now: datetime) -> tuple[TaskStatus, dict[str, Any]]:
        return TaskStatus.COMPLETED, {
            "status": TaskStatus.COMPLETED.value,
            "completed_at": to_iso8601(now),
            "error_message": None,
            "retry_count": 0,
            "next_retry_at": None,
            "last_error_category": None,
        }

    def _failure_updates(
        self, task: Task, result: TaskResult, now: datetime
    ) -> tuple[TaskStatus, dict[str, Any]]:
        category = categorize_error(result.error_message)
        decision = should_retry_task(task, result.error_message)
        common = {
            "error_message": result.error_message,
            "last_error_category": category.value,
        }

        if not decision.retry:
            logger.warning(
                "task_failed_permanently",
                task_id=task.id,
                reason=decision.reason,
                error_category=category.value,
            )
            return TaskStatus.FAILED, {
                **common,
                "status": TaskStatus.FAILED.value,
                "completed_at": to_iso8601(now),
                "next_retry_at": None,
            }

        retry_count = task.retry_count + 1
        return TaskStatus.PENDING, {
            **common,
            "status": TaskStatus.PENDING.value,
            "retry_count": retry_count,
            "next_retry_at": to_iso8601(self.backoff.next_retry_at(now, retry_count)),
            "assigned_at": None,
            "acknowledged_at": None,
            "started_at": None,
        }

    # === Agents / backoff ===

    def refresh_agent_backoff(
        self, agent_id: str, now: datetime | None = None
    ) -> tuple[int, datetime | None]:
        """Recompute and store the agent's ``tasks_in_backoff`` / ``earliest_retry_at``.

        Raises:
            AgentNotFoundError: If the agent does not exist.
        """
        now = self._now(now)
        count, earliest = self.tasks.backoff_aggregate(agent_id, now)
        if not self.agents.update_backoff(agent_id, count, earliest):
            raise AgentNotFoundError(agent_id)
        return count, earliest

    def record_heartbeat(self, agent_id: str, now: datetime | None = None) -> Agent:
        """Mark the agent online and refresh its backoff aggregate.

        A failed aggregate refresh is logged; the heartbeat still succeeds.

        Raises:
            AgentNotFoundError: If the agent does not exist.
        """
        now = self._now(now)
        if not self.agents.record_seen(agent_id, now):
            raise AgentNotFoundError(agent_id)

        try:
            self.refresh_agent_backoff(agent_id, now)
        except Exception:
            logger.warning("agent_backoff_refresh_failed", agent_id=agent_id, exc_info=True)

        agent = self.agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def get_agent_backoff(self, agent_id: str, now: datetime | None = None) -> AgentBackoff:
        """The agent's backing-off tasks, soonest retry first.

        Raises:
            AgentNotFoundError: If the agent does not exist.
        """
        now = self._now(now)
        if not self.agents.exists(agent_id):
            raise AgentNotFoundError(agent_id)

        tasks = self.tasks.list_backing_off(agent_id, now)
        infos = [
            BackoffTaskInfo(
                task_id=t.id,
                task_type=t.task_type.value,
                retry_count=t.retry_count,
                max_retries=t.max_retries,
                next_retry_at=t.next_retry_at,
                error_category=t.last_error_category,
            )
            for t in tasks
        ]
        return AgentBackoff(
            agent_id=agent_id,
            tasks_in_backoff=len(infos),
            earliest_retry_at=infos[0].next_retry_at if infos else None,
            tasks=infos,
        )


__all__ = [
    "ACKNOWLEDGED",
    "AgentBackoff",
    "BackoffTaskInfo",
    "DEFAULT_CLAIM_LIMIT",
    "TaskLifecycle",
    "TaskResult",
]
