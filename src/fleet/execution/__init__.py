"""Task execution lifecycle for fleet-core.

Agents claim, acknowledge and report on tasks through
:class:`TaskLifecycle`; failed attempts are retried with exponential
backoff (:mod:`fleet.execution.retry`).

Tags:
    fleet-core, execution, lifecycle, retry

Doc-Types:
    package-overview
"""

from __future__ import annotations

from fleet.core.dialect import Dialect
from fleet.core.protocols import Connection
from fleet.core.settings import FleetSettings, get_settings
from fleet.core.timestamps import Clock, utc_now
from fleet.observability.metrics import FleetMetrics

from .lifecycle import (
    ACKNOWLEDGED,
    AgentBackoff,
    BackoffTaskInfo,
    TaskLifecycle,
    TaskResult,
)
from .retry import (
    RetryBackoff,
    RetryDecision,
    TaskErrorCategory,
    categorize_error,
    is_permanent_error,
    should_retry_task,
)

__all__ = [
    "ACKNOWLEDGED",
    "AgentBackoff",
    "BackoffTaskInfo",
    "RetryBackoff",
    "RetryDecision",
    "TaskErrorCategory",
    "TaskLifecycle",
    "TaskResult",
    "categorize_error",
    "create_lifecycle",
    "is_permanent_error",
    "should_retry_task",
]


def create_lifecycle(
    conn: Connection,
    settings: FleetSettings | None = None,
    *,
    dialect: Dialect | None = None,
    clock: Clock = utc_now,
    exporter: FleetMetrics | None = None,
) -> TaskLifecycle:
    """Factory function to create a task lifecycle wired from settings.

    Example:
        >>> lifecycle = create_lifecycle(conn)
        >>> lifecycle.claim_tasks("agent-1")
    """
    settings = settings or get_settings()
    return TaskLifecycle(
        conn,
        dialect=dialect,
        backoff=RetryBackoff(
            base_delay=settings.retry_base_delay_seconds,
            multiplier=settings.retry_multiplier,
        ),
        clock=clock,
        claim_limit=settings.claim_limit_default,
        exporter=exporter,
    )
