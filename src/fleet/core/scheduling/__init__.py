"""Policy scheduling for fleet-core.

Manifesto:
    A backup policy says *when*; the scheduler decides *whether now*.  It
    runs one tick per interval, evaluates each enabled policy's backup,
    check and prune schedules independently, emits one task per assigned
    agent for every due pair, and persists a cursor per pair so that
    restarts and missed ticks never double-fire or silently skip.

┌──────────────────────────────────────────────────────────────────────────────┐
│  Quick Start:                                                                 │
│                                                                               │
│   from fleet.core.database import connect                                     │
│   from fleet.core.scheduling import create_scheduler                          │
│                                                                               │
│   scheduler = create_scheduler(connect("fleet.db"))                           │
│   scheduler.start()                                                           │
│   ...                                                                         │
│   print(scheduler.status().to_dict())                                         │
│   scheduler.stop()                                                            │
│                                                                               │
│  Tables:                                                                      │
│  - policies, agent_policy_links: what to schedule and for whom               │
│  - policy_task_states: one cursor per (policy, task type)                    │
│  - tasks: generated work                                                      │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Comparing schedule times as naive datetimes
    ✅ Every time goes through ``fleet.core.timestamps.ensure_utc``
    ❌ Constructing scheduler components individually
    ✅ ``create_scheduler(conn, settings)`` factory function

Tags:
    fleet-core, scheduling, cron, interval, beat-as-poller

Doc-Types:
    package-overview, module-index
"""

from __future__ import annotations

from fleet.core.dialect import Dialect
from fleet.core.protocols import Connection
from fleet.core.settings import FleetSettings, get_settings
from fleet.core.timestamps import Clock, utc_now
from fleet.observability.metrics import FleetMetrics

from .metrics import MetricsSnapshot, SchedulerMetrics
from .protocol import BackendHealth, SchedulerBackend, TickCallback
from .schedule import (
    ScheduleSpec,
    compute_next_run,
    compute_next_run_with_last,
    parse_schedule,
    validate_schedule,
)
from .service import PairResult, SchedulerService, SchedulerStatus, UpcomingScheduleItem
from .state import PolicyTaskStateStore
from .thread_backend import ThreadSchedulerBackend

__all__ = [
    "BackendHealth",
    "MetricsSnapshot",
    "PairResult",
    "PolicyTaskStateStore",
    "ScheduleSpec",
    "SchedulerBackend",
    "SchedulerMetrics",
    "SchedulerService",
    "SchedulerStatus",
    "ThreadSchedulerBackend",
    "TickCallback",
    "UpcomingScheduleItem",
    "compute_next_run",
    "compute_next_run_with_last",
    "create_scheduler",
    "parse_schedule",
    "validate_schedule",
]


def create_scheduler(
    conn: Connection,
    settings: FleetSettings | None = None,
    *,
    dialect: Dialect | None = None,
    clock: Clock = utc_now,
    exporter: FleetMetrics | None = None,
) -> SchedulerService:
    """Factory function to create a fully wired scheduler service.

    Args:
        conn: Database connection
        settings: Tick interval, stop timeout and retry defaults
            (default: ``get_settings()``)
        dialect: SQL dialect (default: SQLite)
        clock: Source of "now"
        exporter: Prometheus metrics the scheduler also publishes into

    Example:
        >>> scheduler = create_scheduler(conn)
        >>> scheduler.start()
    """
    settings = settings or get_settings()
    return SchedulerService(
        conn,
        dialect=dialect,
        backend=ThreadSchedulerBackend(stop_timeout=settings.stop_timeout_seconds),
        metrics=SchedulerMetrics(clock=clock, exporter=exporter),
        clock=clock,
        interval_seconds=settings.scheduler_interval_seconds,
        default_max_retries=settings.default_max_retries,
    )
