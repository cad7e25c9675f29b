"""Tests for fleet.observability.metrics."""

import pytest

from fleet.observability.metrics import (
    Counter,
    FleetMetrics,
    Gauge,
    Histogram,
    MetricsRegistry,
    get_metrics_registry,
)


class TestCounter:
    def test_inc(self):
        c = Counter("requests_total")
        c.inc()
        c.inc(2)
        assert c.labels().value == 3.0

    def test_labels_are_independent(self):
        c = Counter("results_total", labels=["outcome"])
        c.labels(outcome="completed").inc()
        c.labels(outcome="retry").inc(3)
        assert c.labels(outcome="completed").value == 1.0
        assert c.labels(outcome="retry").value == 3.0

    def test_cannot_decrease(self):
        with pytest.raises(ValueError):
            Counter("c").inc(-1)

    def test_unknown_label_rejected(self):
        with pytest.raises(ValueError, match="unknown label"):
            Counter("c", labels=["outcome"]).labels(agent="a1")


class TestGauge:
    def test_set_inc_dec(self):
        g = Gauge("in_backoff", labels=["agent_id"])
        child = g.labels(agent_id="a1")
        child.set(5)
        child.inc()
        child.dec(2)
        assert child.value == 4.0


class TestHistogram:
    def test_observe(self):
        h = Histogram("tick_seconds", buckets=(0.1, 1.0, float("inf")))
        h.observe(0.05)
        h.observe(0.5)
        h.observe(5.0)

        (sample,) = h.collect()
        assert sample["count"] == 3
        assert sample["sum"] == pytest.approx(5.55)
        assert sample["buckets"] == {0.1: 1, 1.0: 2, float("inf"): 3}

    def test_empty_collects_nothing(self):
        assert Histogram("h").collect() == []


class TestMetricsRegistry:
    def test_get_or_create_returns_same_metric(self):
        reg = MetricsRegistry()
        assert reg.counter("c") is reg.counter("c")

    def test_export_prometheus(self):
        reg = MetricsRegistry()
        reg.counter("fleet_tasks_generated_total", "Tasks created", ["task_type"]).labels(
            task_type="backup"
        ).inc()
        reg.gauge("fleet_unused", "Never set")

        text = reg.export_prometheus()
        assert "# HELP fleet_tasks_generated_total Tasks created" in text
        assert "# TYPE fleet_tasks_generated_total counter" in text
        assert 'fleet_tasks_generated_total{task_type="backup"} 1.0' in text
        assert "fleet_unused" not in text

    def test_histogram_export(self):
        reg = MetricsRegistry()
        reg.histogram("tick", buckets=(1.0, float("inf"))).observe(0.5)

        text = reg.export_prometheus()
        assert 'tick_bucket{le="1.0"} 1' in text
        assert 'tick_bucket{le="+Inf"} 1' in text
        assert "tick_count 1" in text

    def test_default_registry_singleton(self):
        assert get_metrics_registry() is get_metrics_registry()


class TestFleetMetrics:
    def test_metric_names(self):
        reg = MetricsRegistry()
        m = FleetMetrics(reg)
        m.scheduler_runs.inc()
        m.tasks_claimed.inc(4)
        m.task_results.labels(outcome="failed").inc()
        m.next_run.labels(policy_id="p1", task_type="prune").set(1704067200)

        names = {sample["name"] for sample in reg.collect()}
        assert names == {
            "fleet_scheduler_runs_total",
            "fleet_tasks_claimed_total",
            "fleet_task_results_total",
            "fleet_policy_next_run_timestamp_seconds",
        }

    def test_shared_registry_reuses_metrics(self):
        reg = MetricsRegistry()
        assert FleetMetrics(reg).tasks_generated is FleetMetrics(reg).tasks_generated
