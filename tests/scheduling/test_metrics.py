"""Tests for SchedulerMetrics and MetricsSnapshot."""

import threading
from datetime import timedelta

import pytest

from fleet.core.scheduling import MetricsSnapshot, SchedulerMetrics
from fleet.observability.metrics import FleetMetrics, MetricsRegistry


class TestSchedulerMetrics:
    def test_empty_snapshot(self, clock):
        snap = SchedulerMetrics(clock=clock).get_snapshot()
        assert snap == MetricsSnapshot()
        assert snap.average_run_duration_seconds == 0.0

    def test_record_scheduler_run(self, clock, t0):
        metrics = SchedulerMetrics(clock=clock)
        metrics.record_scheduler_run(0.2, policies_processed=3)
        clock.advance(timedelta(minutes=1))
        metrics.record_scheduler_run(0.4, policies_processed=1)

        snap = metrics.get_snapshot()
        assert snap.total_runs == 2
        assert snap.last_run == t0 + timedelta(minutes=1)
        assert snap.policies_processed == 1
        assert snap.last_run_duration_seconds == pytest.approx(0.4)
        assert snap.average_run_duration_seconds == pytest.approx(0.3)

    def test_record_task_generated_by_type(self, clock):
        metrics = SchedulerMetrics(clock=clock)
        for task_type in ("backup", "backup", "check"):
            metrics.record_task_generated(task_type)

        snap = metrics.get_snapshot()
        assert snap.tasks_generated_total == 3
        assert snap.tasks_generated_by_type == {"backup": 2, "check": 1}

    def test_record_error(self, clock, t0):
        metrics = SchedulerMetrics(clock=clock)
        metrics.record_error(RuntimeError("disk full"))
        metrics.record_error("second")

        snap = metrics.get_snapshot()
        assert snap.errors_total == 2
        assert snap.last_error == "second"
        assert snap.last_error_at == t0

    def test_next_run_seconds(self, clock, t0):
        metrics = SchedulerMetrics(clock=clock)
        assert metrics.next_run_seconds("p1", "backup") is None

        metrics.update_next_run("p1", "backup", t0 + timedelta(minutes=2))
        assert metrics.next_run_seconds("p1", "backup") == 120.0
        assert metrics.next_run_seconds("p1", "backup", now=t0 + timedelta(minutes=3)) == -60.0
        assert metrics.next_run_seconds("p1", "check") is None

    def test_snapshot_is_isolated(self, clock, t0):
        """Mutating a snapshot never changes the live counters."""
        metrics = SchedulerMetrics(clock=clock)
        metrics.record_task_generated("backup")
        metrics.update_next_run("p1", "backup", t0)

        snap = metrics.get_snapshot()
        snap.tasks_generated_by_type["backup"] = 99
        snap.next_runs["p1"]["backup"] = t0 + timedelta(days=1)
        snap.next_runs["p2"] = {}

        fresh = metrics.get_snapshot()
        assert fresh.tasks_generated_by_type == {"backup": 1}
        assert fresh.next_runs == {"p1": {"backup": t0}}

    def test_snapshot_does_not_see_later_writes(self, clock):
        metrics = SchedulerMetrics(clock=clock)
        snap = metrics.get_snapshot()
        metrics.record_task_generated("prune")
        assert snap.tasks_generated_total == 0
        assert snap.tasks_generated_by_type == {}

    def test_concurrent_writers(self, clock):
        metrics = SchedulerMetrics(clock=clock)

        def work():
            for _ in range(500):
                metrics.record_task_generated("backup")
                metrics.record_error("x")

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snap = metrics.get_snapshot()
        assert snap.tasks_generated_total == 2000
        assert snap.tasks_generated_by_type["backup"] == 2000
        assert snap.errors_total == 2000

    def test_to_dict(self, clock, t0):
        metrics = SchedulerMetrics(clock=clock)
        metrics.update_next_run("p1", "check", t0)
        metrics.record_scheduler_run(0.1, 1)

        data = metrics.get_snapshot().to_dict()
        assert data["total_runs"] == 1
        assert data["last_run"] == "2024-01-01T10:30:00.000000+00:00"
        assert data["next_runs"] == {"p1": {"check": "2024-01-01T10:30:00.000000+00:00"}}
        assert data["last_error"] is None


class TestExporterPublishing:
    """Counters are mirrored into FleetMetrics when one is supplied."""

    def test_publishes_to_registry(self, clock, t0):
        registry = MetricsRegistry()
        exporter = FleetMetrics(registry)
        metrics = SchedulerMetrics(clock=clock, exporter=exporter)

        metrics.record_scheduler_run(0.02, 1)
        metrics.record_task_generated("backup")
        metrics.record_task_generated("backup")
        metrics.record_error("boom")
        metrics.update_next_run("p1", "backup", t0)

        assert exporter.scheduler_runs.labels().value == 1.0
        assert exporter.tasks_generated.labels(task_type="backup").value == 2.0
        assert exporter.scheduler_errors.labels().value == 1.0
        assert exporter.next_run.labels(policy_id="p1", task_type="backup").value == t0.timestamp()

        text = registry.export_prometheus()
        assert 'fleet_tasks_generated_total{task_type="backup"} 2.0' in text
        assert "fleet_scheduler_tick_duration_seconds_count 1" in text
