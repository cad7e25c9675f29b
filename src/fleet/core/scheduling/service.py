"""Scheduler service - turns due policies into per-agent tasks.

Manifesto:
    The SchedulerService combines a timing backend with the policy, task
    and state repositories.  The beat-as-poller pattern decouples timing
    from schedule evaluation: the backend only says "tick now", and
    ``run_once()`` can be driven directly from tests with any ``now``.

    One bad policy never stops the loop.  Parse errors, per-agent task
    creation failures and state write failures are logged, counted in
    metrics, and the tick moves on to the next pair.

Tags:
    fleet-core, scheduling, orchestrator, beat-as-poller, service

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER SERVICE                                                            │
│                                                                               │
│   run_once(now)                                                               │
│     │                                                                         │
│     ├── policies.list_enabled()                                               │
│     └── for each policy, for each (task_type, schedule):                      │
│           process_schedule_type(policy, task_type, schedule, now)             │
│             1. parse_schedule()          invalid → record_error, skip         │
│             2. state = states.get_or_new()                                    │
│                no next_run → seed (interval: now, cron: next occurrence)      │
│             3. now < next_run → not due                                       │
│             4. one pending Task per assigned agent                            │
│             5. last_run = now, next_run = compute_next_run_with_last()        │
│             6. states.save()  (single upsert)                                 │
│             7. metrics.update_next_run()                                      │
│     record_scheduler_run(duration, policies_processed)                        │
│                                                                               │
│   Public API:                                                                 │
│   ├── start() / stop() / is_running                                           │
│   ├── run_once(now=None)     one tick, awaitable                              │
│   ├── trigger(policy_id, task_type)   manual dispatch, state untouched        │
│   └── status()               SchedulerStatus for operators                    │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fleet.core.dialect import Dialect
from fleet.core.errors import (
    PolicyDisabledError,
    PolicyNotFoundError,
    ScheduleParseError,
    SchedulerAlreadyRunningError,
)
from fleet.core.logging import LogContext, get_logger
from fleet.core.models.agent import Agent
from fleet.core.models.policy import DEFAULT_MAX_RETRIES, Policy
from fleet.core.models.task import Task, TaskStatus, TaskType
from fleet.core.protocols import Connection
from fleet.core.repositories.policies import PolicyRepository
from fleet.core.repositories.tasks import TaskRepository
from fleet.core.timestamps import Clock, ensure_utc, to_iso8601, utc_now

from .metrics import MetricsSnapshot, SchedulerMetrics
from .protocol import SchedulerBackend
from .schedule import compute_next_run, compute_next_run_with_last, parse_schedule
from .state import PolicyTaskStateStore
from .thread_backend import ThreadSchedulerBackend

logger = get_logger(__name__)


@dataclass(frozen=True)
class PairResult:
    """Outcome of evaluating one (policy, task type) pair."""

    policy_id: str
    task_type: str
    due: bool = False
    tasks_created: int = 0
    next_run: datetime | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class UpcomingScheduleItem:
    """One row of the upcoming-schedule view."""

    policy_id: str
    policy_name: str
    task_type: str
    next_run: datetime
    schedule: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "policy_name": self.policy_name,
            "task_type": self.task_type,
            "next_run": to_iso8601(self.next_run),
            "schedule": self.schedule,
        }


@dataclass
class SchedulerStatus:
    """Operator-facing scheduler status."""

    running: bool
    last_run: datetime | None
    total_runs: int
    tasks_generated: int
    errors_total: int
    last_error: str | None
    policies_enabled: int
    upcoming_schedule: list[UpcomingScheduleItem] = field(default_factory=list)
    metrics: MetricsSnapshot = field(default_factory=MetricsSnapshot)

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "last_run": to_iso8601(self.last_run),
            "total_runs": self.total_runs,
            "tasks_generated": self.tasks_generated,
            "errors_total": self.errors_total,
            "last_error": self.last_error,
            "policies_enabled": self.policies_enabled,
            "upcoming_schedule": [item.to_dict() for item in self.upcoming_schedule],
            "metrics": self.metrics.to_dict(),
        }


class SchedulerService:
    """Policy scheduler: beat-as-poller over the orchestrator tables.

    Example:
        >>> from fleet.core.database import connect
        >>> from fleet.core.scheduling import SchedulerService
        >>> conn = connect("fleet.db")
        >>> service = SchedulerService(conn, interval_seconds=60)
        >>> service.start()
        >>> # Later...
        >>> service.stop()
    """

    def __init__(
        self,
        conn: Connection,
        *,
        dialect: Dialect | None = None,
        backend: SchedulerBackend | None = None,
        metrics: SchedulerMetrics | None = None,
        clock: Clock = utc_now,
        interval_seconds: float = 60.0,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        """Initialize scheduler service.

        Args:
            conn: Database connection
            dialect: SQL dialect (default: SQLite)
            backend: Timing backend (default: ThreadSchedulerBackend)
            metrics: Metrics sink (default: a fresh SchedulerMetrics)
            clock: Source of "now" for ticks driven by the backend
            interval_seconds: Tick period
            default_max_retries: Retry budget for policies without one
        """
        self.policies = PolicyRepository(conn, dialect)
        self.tasks = TaskRepository(conn, dialect)
        self.states = PolicyTaskStateStore(conn, dialect)
        self.backend = backend or ThreadSchedulerBackend()
        self.metrics = metrics or SchedulerMetrics(clock=clock)
        self.interval = interval_seconds
        self.default_max_retries = default_max_retries
        self._clock = clock

        self._running = False
        self._lock = threading.Lock()

    # === Lifecycle ===

    def start(self) -> None:
        """Start the tick loop.

        Raises:
            SchedulerAlreadyRunningError: If the loop is already active.
        """
        with self._lock:
            if self._running:
                raise SchedulerAlreadyRunningError()
            logger.info(
                "scheduler_starting",
                backend=self.backend.name,
                interval_seconds=self.interval,
            )
            self._running = True
            try:
                self.backend.start(self._tick, self.interval)
            except Exception:
                self._running = False
                raise

    def stop(self) -> None:
        """Stop the tick loop; no task is generated after this returns."""
        with self._lock:
            if not self._running:
                return
            self.backend.stop()
            self._running = False
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    # === Tick Processing ===

    async def _tick(self) -> None:
        await self.run_once()

    async def run_once(self, now: datetime | None = None) -> list[PairResult]:
        """Evaluate every enabled policy once.

        Returns the per-pair results in evaluation order.
        """
        now = ensure_utc(now) if now is not None else self._clock()
        started = time.perf_counter()

        try:
            policies = self.policies.list_enabled()
        except Exception as e:
            logger.exception("policy_load_failed")
            self.metrics.record_error(e)
            return []

        results: list[PairResult] = []
        policies_processed = 0

        for policy in policies:
            any_ok = False
            for task_type, schedule in policy.schedules():
                with LogContext(policy_id=policy.id, task_type=task_type):
                    try:
                        result = self.process_schedule_type(policy, task_type, schedule, now)
                    except Exception as e:
                        logger.exception("schedule_processing_failed")
                        self.metrics.record_error(e)
                        result = PairResult(policy.id, task_type, error=str(e))
                results.append(result)
                any_ok = any_ok or result.ok
            if any_ok:
                policies_processed += 1

        duration = time.perf_counter() - started
        self.metrics.record_scheduler_run(duration, policies_processed)
        logger.debug(
            "scheduler_tick_complete",
            policies=len(policies),
            policies_processed=policies_processed,
            tasks_created=sum(r.tasks_created for r in results),
            duration_seconds=round(duration, 4),
        )
        return results

    def process_schedule_type(
        self,
        policy: Policy,
        task_type: str,
        schedule: str,
        now: datetime | None = None,
    ) -> PairResult:
        """Evaluate one (policy, task type) pair and generate tasks if due.

        Raises:
            StateStoreError: If the schedule cursor cannot be read or saved.
        """
        now = ensure_utc(now) if now is not None else self._clock()

        try:
            spec = parse_schedule(schedule)
        except ScheduleParseError as e:
            logger.warning(
                "invalid_schedule",
                policy_id=policy.id,
                task_type=task_type,
                schedule=schedule,
                reason=e.reason,
            )
            self.metrics.record_error(e)
            return PairResult(policy.id, task_type, error=str(e))

        state = self.states.get_or_new(policy.id, task_type)
        if state.next_run is None:
            # intervals fire on first sight, cron waits for its next slot
            state.next_run = now if spec.is_interval else compute_next_run(spec, now)
            self.states.save(state)
            state = self.states.get_or_new(policy.id, task_type)
            self.metrics.update_next_run(policy.id, task_type, state.next_run)

        if now < state.next_run:
            return PairResult(policy.id, task_type, due=False, next_run=state.next_run)

        # next run is computed before any task is written
        next_run = compute_next_run_with_last(spec, now, now)
        created = self._create_tasks(policy, task_type, now)

        state.last_run = now
        state.next_run = next_run
        self.states.save(state)
        self.metrics.update_next_run(policy.id, task_type, state.next_run)

        logger.info(
            "tasks_generated",
            policy_id=policy.id,
            task_type=task_type,
            count=created,
            next_run=to_iso8601(state.next_run),
        )
        return PairResult(
            policy.id, task_type, due=True, tasks_created=created, next_run=state.next_run
        )

    def _create_tasks(self, policy: Policy, task_type: str, now: datetime) -> int:
        created = 0
        for agent in self.policies.agents_for_policy(policy.id):
            try:
                self.tasks.create(self._build_task(policy, agent, task_type, now))
            except Exception as e:
                logger.exception(
                    "task_creation_failed",
                    policy_id=policy.id,
                    agent_id=agent.id,
                    task_type=task_type,
                )
                self.metrics.record_error(e)
                continue
            created += 1
            self.metrics.record_task_generated(task_type)
        return created

    def _build_task(self, policy: Policy, agent: Agent, task_type: str, now: datetime) -> Task:
        max_retries = policy.retry_budget(self.default_max_retries)
        return Task(
            agent_id=agent.id,
            policy_id=policy.id,
            task_type=TaskType(task_type),
            status=TaskStatus.PENDING,
            repository=policy.repository_url,
            include_paths=tuple(policy.include_paths),
            exclude_paths=tuple(policy.exclude_paths),
            retention=policy.retention,
            scheduled_for=now,
            max_retries=max_retries,
        )

    # === Manual Operations ===

    def trigger(self, policy_id: str, task_type: str = "backup") -> list[Task]:
        """Create one task per assigned agent now, without touching the schedule cursor.

        Raises:
            PolicyNotFoundError: If the policy does not exist.
            PolicyDisabledError: If the policy is disabled.
            ValueError: If *task_type* is not a known task type.
        """
        policy = self.policies.get(policy_id)
        if policy is None:
            raise PolicyNotFoundError(policy_id)
        if not policy.enabled:
            raise PolicyDisabledError(policy_id)
        kind = TaskType(task_type)

        now = self._clock()
        tasks = [
            self.tasks.create(self._build_task(policy, agent, kind.value, now))
            for agent in self.policies.agents_for_policy(policy.id)
        ]
        for _ in tasks:
            self.metrics.record_task_generated(kind.value)
        logger.info(
            "manual_trigger",
            policy_id=policy.id,
            task_type=kind.value,
            count=len(tasks),
        )
        return tasks

    # === Status ===

    def status(self, now: datetime | None = None) -> SchedulerStatus:
        """Operator view: counters plus the next run of every enabled pair."""
        now = ensure_utc(now) if now is not None else self._clock()
        snapshot = self.metrics.get_snapshot()
        policies = self.policies.list_enabled()

        upcoming: list[UpcomingScheduleItem] = []
        for policy in policies:
            for task_type, schedule in policy.schedules():
                next_run = self._upcoming_next_run(policy, task_type, schedule, now, snapshot)
                if next_run is None:
                    continue
                upcoming.append(
                    UpcomingScheduleItem(
                        policy_id=policy.id,
                        policy_name=policy.name,
                        task_type=task_type,
                        next_run=next_run,
                        schedule=schedule,
                    )
                )
        upcoming.sort(key=lambda item: (item.next_run, item.policy_name, item.task_type))

        return SchedulerStatus(
            running=self.is_running,
            last_run=snapshot.last_run,
            total_runs=snapshot.total_runs,
            tasks_generated=snapshot.tasks_generated_total,
            errors_total=snapshot.errors_total,
            last_error=snapshot.last_error,
            policies_enabled=len(policies),
            upcoming_schedule=upcoming,
            metrics=snapshot,
        )

    def _upcoming_next_run(
        self,
        policy: Policy,
        task_type: str,
        schedule: str,
        now: datetime,
        snapshot: MetricsSnapshot,
    ) -> datetime | None:
        state = self.states.get(policy.id, task_type)
        if state is not None and state.next_run is not None:
            return state.next_run
        known = snapshot.next_runs.get(policy.id, {}).get(task_type)
        if known is not None:
            return known
        try:
            spec = parse_schedule(schedule)
        except ScheduleParseError:
            return None
        return now if spec.is_interval else compute_next_run(spec, now)

    def health(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "backend": self.backend.health().to_dict(),
        }


__all__ = [
    "PairResult",
    "SchedulerService",
    "SchedulerStatus",
    "UpcomingScheduleItem",
]
