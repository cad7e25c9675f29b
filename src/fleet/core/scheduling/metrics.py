"""Scheduler metrics: counters behind one lock, read through snapshots.

Manifesto:
    The tick thread writes metrics while status readers (CLI, HTTP
    handlers) read them.  Every access goes through one re-entrant lock,
    and readers only ever get a :class:`MetricsSnapshot` whose dicts are
    fresh copies, so nothing a reader holds can change underneath it or
    leak writes back.

    Counters are also published into a
    :class:`~fleet.observability.metrics.FleetMetrics` instance when one is
    supplied, for Prometheus export.

Tags:
    fleet-core, scheduling, metrics, thread-safety, snapshot

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fleet.core.timestamps import Clock, ensure_utc, to_iso8601, utc_now
from fleet.observability.metrics import FleetMetrics


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of :class:`SchedulerMetrics`."""

    tasks_generated_total: int = 0
    tasks_generated_by_type: dict[str, int] = field(default_factory=dict)
    total_runs: int = 0
    last_run: datetime | None = None
    errors_total: int = 0
    last_error: str | None = None
    last_error_at: datetime | None = None
    policies_processed: int = 0
    last_run_duration_seconds: float = 0.0
    average_run_duration_seconds: float = 0.0
    next_runs: dict[str, dict[str, datetime]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks_generated_total": self.tasks_generated_total,
            "tasks_generated_by_type": dict(self.tasks_generated_by_type),
            "total_runs": self.total_runs,
            "last_run": to_iso8601(self.last_run),
            "errors_total": self.errors_total,
            "last_error": self.last_error,
            "last_error_at": to_iso8601(self.last_error_at),
            "policies_processed": self.policies_processed,
            "last_run_duration_seconds": self.last_run_duration_seconds,
            "average_run_duration_seconds": self.average_run_duration_seconds,
            "next_runs": {
                policy_id: {tt: to_iso8601(when) for tt, when in by_type.items()}
                for policy_id, by_type in self.next_runs.items()
            },
        }


class SchedulerMetrics:
    """Mutable scheduler counters; one instance per scheduler."""

    def __init__(self, clock: Clock = utc_now, exporter: FleetMetrics | None = None) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self._exporter = exporter

        self._tasks_generated_total = 0
        self._tasks_generated_by_type: dict[str, int] = {}
        self._total_runs = 0
        self._last_run: datetime | None = None
        self._errors_total = 0
        self._last_error: str | None = None
        self._last_error_at: datetime | None = None
        self._policies_processed = 0
        self._last_duration = 0.0
        self._total_duration = 0.0
        self._next_runs: dict[str, dict[str, datetime]] = {}

    def record_scheduler_run(self, duration_seconds: float, policies_processed: int) -> None:
        """Count one completed tick and fold its duration into the mean."""
        with self._lock:
            self._total_runs += 1
            self._last_run = self._clock()
            self._policies_processed = policies_processed
            self._last_duration = duration_seconds
            self._total_duration += duration_seconds
        if self._exporter is not None:
            self._exporter.scheduler_runs.inc()
            self._exporter.tick_duration.observe(duration_seconds)

    def record_task_generated(self, task_type: str) -> None:
        with self._lock:
            self._tasks_generated_total += 1
            self._tasks_generated_by_type[task_type] = (
                self._tasks_generated_by_type.get(task_type, 0) + 1
            )
        if self._exporter is not None:
            self._exporter.tasks_generated.labels(task_type=task_type).inc()

    def record_error(self, err: BaseException | str) -> None:
        with self._lock:
            self._errors_total += 1
            self._last_error = str(err)
            self._last_error_at = self._clock()
        if self._exporter is not None:
            self._exporter.scheduler_errors.inc()

    def update_next_run(self, policy_id: str, task_type: str, when: datetime) -> None:
        when = ensure_utc(when)
        with self._lock:
            self._next_runs.setdefault(policy_id, {})[task_type] = when
        if self._exporter is not None:
            self._exporter.next_run.labels(policy_id=policy_id, task_type=task_type).set(
                when.timestamp()
            )

    def next_run_seconds(
        self, policy_id: str, task_type: str, now: datetime | None = None
    ) -> float | None:
        """Seconds until the pair's next run (negative if overdue), None if unknown."""
        with self._lock:
            when = self._next_runs.get(policy_id, {}).get(task_type)
        if when is None:
            return None
        now = ensure_utc(now) if now is not None else self._clock()
        return (when - now).total_seconds()

    def get_snapshot(self) -> MetricsSnapshot:
        """Consistent copy of every counter; no dict is shared with the live metrics."""
        with self._lock:
            average = self._total_duration / self._total_runs if self._total_runs else 0.0
            return MetricsSnapshot(
                tasks_generated_total=self._tasks_generated_total,
                tasks_generated_by_type=dict(self._tasks_generated_by_type),
                total_runs=self._total_runs,
                last_run=self._last_run,
                errors_total=self._errors_total,
                last_error=self._last_error,
                last_error_at=self._last_error_at,
                policies_processed=self._policies_processed,
                last_run_duration_seconds=self._last_duration,
                average_run_duration_seconds=average,
                next_runs={pid: dict(by_type) for pid, by_type in self._next_runs.items()},
            )


__all__ = ["MetricsSnapshot", "SchedulerMetrics"]
