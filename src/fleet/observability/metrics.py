"""Prometheus-style metrics for the orchestrator.

The scheduler and the task lifecycle publish counters, gauges and a
tick-duration histogram into a :class:`MetricsRegistry`; the registry
renders them in the Prometheus text exposition format.

Metric types:
- Counter: Monotonically increasing value
- Gauge: Value that can go up or down
- Histogram: Distribution of values

Example:
    >>> from fleet.observability.metrics import MetricsRegistry, FleetMetrics
    >>> registry = MetricsRegistry()
    >>> metrics = FleetMetrics(registry)
    >>> metrics.tasks_generated.labels(task_type="backup").inc()
    >>> print(registry.export_prometheus())
    # HELP fleet_tasks_generated_total Tasks created by the scheduler
    # TYPE fleet_tasks_generated_total counter
    fleet_tasks_generated_total{task_type="backup"} 1.0
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Labels:
    """Immutable label set for metrics."""

    _labels: tuple[tuple[str, str], ...]

    @classmethod
    def from_dict(cls, d: dict[str, str] | None) -> Labels:
        if not d:
            return cls(())
        return cls(tuple(sorted((k, str(v)) for k, v in d.items())))

    def to_dict(self) -> dict[str, str]:
        return dict(self._labels)


class Metric(ABC):
    """Base class for metrics."""

    type_name = "untyped"

    def __init__(self, name: str, description: str = "", labels: list[str] | None = None):
        self.name = name
        self.description = description
        self._label_names = labels or []
        self._lock = threading.Lock()

    def _labels(self, kwargs: dict[str, str]) -> Labels:
        unknown = set(kwargs) - set(self._label_names)
        if unknown:
            raise ValueError(f"{self.name}: unknown label(s) {sorted(unknown)}")
        return Labels.from_dict(kwargs)

    @abstractmethod
    def collect(self) -> list[dict[str, Any]]:
        """Collect metric values for export."""
        ...


class Counter(Metric):
    """A monotonically increasing counter."""

    type_name = "counter"

    def __init__(self, name: str, description: str = "", labels: list[str] | None = None):
        super().__init__(name, description, labels)
        self._values: dict[Labels, float] = {}

    def labels(self, **kwargs: str) -> _CounterChild:
        return _CounterChild(self, self._labels(kwargs))

    def inc(self, value: float = 1.0) -> None:
        self.labels().inc(value)

    def _inc(self, labels: Labels, value: float) -> None:
        with self._lock:
            self._values[labels] = self._values.get(labels, 0.0) + value

    def _get(self, labels: Labels) -> float:
        with self._lock:
            return self._values.get(labels, 0.0)

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                {"name": self.name, "type": self.type_name, "labels": lbl.to_dict(), "value": v}
                for lbl, v in self._values.items()
            ]


class _CounterChild:
    def __init__(self, counter: Counter, labels: Labels):
        self._counter = counter
        self._labels = labels

    def inc(self, value: float = 1.0) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        self._counter._inc(self._labels, value)

    @property
    def value(self) -> float:
        return self._counter._get(self._labels)


class Gauge(Metric):
    """A value that can go up or down."""

    type_name = "gauge"

    def __init__(self, name: str, description: str = "", labels: list[str] | None = None):
        super().__init__(name, description, labels)
        self._values: dict[Labels, float] = {}

    def labels(self, **kwargs: str) -> _GaugeChild:
        return _GaugeChild(self, self._labels(kwargs))

    def set(self, value: float) -> None:
        self.labels().set(value)

    def _set(self, labels: Labels, value: float) -> None:
        with self._lock:
            self._values[labels] = value

    def _add(self, labels: Labels, value: float) -> None:
        with self._lock:
            self._values[labels] = self._values.get(labels, 0.0) + value

    def _get(self, labels: Labels) -> float:
        with self._lock:
            return self._values.get(labels, 0.0)

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                {"name": self.name, "type": self.type_name, "labels": lbl.to_dict(), "value": v}
                for lbl, v in self._values.items()
            ]


class _GaugeChild:
    def __init__(self, gauge: Gauge, labels: Labels):
        self._gauge = gauge
        self._labels = labels

    def set(self, value: float) -> None:
        self._gauge._set(self._labels, value)

    def inc(self, value: float = 1.0) -> None:
        self._gauge._add(self._labels, value)

    def dec(self, value: float = 1.0) -> None:
        self._gauge._add(self._labels, -value)

    @property
    def value(self) -> float:
        return self._gauge._get(self._labels)


class Histogram(Metric):
    """A distribution of observed values (no labels)."""

    type_name = "histogram"

    DEFAULT_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, float("inf"))

    def __init__(self, name: str, description: str = "", buckets: tuple[float, ...] | None = None):
        super().__init__(name, description)
        self._buckets = buckets or self.DEFAULT_BUCKETS
        self._counts = dict.fromkeys(self._buckets, 0)
        self._sum = 0.0
        self._count = 0

    def observe(self, value: float) -> None:
        with self._lock:
            self._sum += value
            self._count += 1
            for bucket in self._buckets:
                if value <= bucket:
                    self._counts[bucket] += 1

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            if not self._count:
                return []
            return [
                {
                    "name": self.name,
                    "type": self.type_name,
                    "labels": {},
                    "buckets": dict(self._counts),
                    "sum": self._sum,
                    "count": self._count,
                }
            ]


class MetricsRegistry:
    """Registry of all metrics for collection and export."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def _get_or_create(self, name: str, factory: Any) -> Any:
        with self._lock:
            if name not in self._metrics:
                self._metrics[name] = factory()
            return self._metrics[name]

    def counter(self, name: str, description: str = "", labels: list[str] | None = None) -> Counter:
        """Get or create a counter."""
        return self._get_or_create(name, lambda: Counter(name, description, labels))

    def gauge(self, name: str, description: str = "", labels: list[str] | None = None) -> Gauge:
        """Get or create a gauge."""
        return self._get_or_create(name, lambda: Gauge(name, description, labels))

    def histogram(
        self, name: str, description: str = "", buckets: tuple[float, ...] | None = None
    ) -> Histogram:
        """Get or create a histogram."""
        return self._get_or_create(name, lambda: Histogram(name, description, buckets))

    def collect(self) -> list[dict[str, Any]]:
        with self._lock:
            metrics = list(self._metrics.values())
        results: list[dict[str, Any]] = []
        for metric in metrics:
            results.extend(metric.collect())
        return results

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        with self._lock:
            metrics = list(self._metrics.values())

        lines: list[str] = []
        for metric in metrics:
            samples = metric.collect()
            if not samples:
                continue
            if metric.description:
                lines.append(f"# HELP {metric.name} {metric.description}")
            lines.append(f"# TYPE {metric.name} {metric.type_name}")
            for data in samples:
                label_str = _format_labels(data["labels"])
                if data["type"] == "histogram":
                    for bucket, count in data["buckets"].items():
                        le = "+Inf" if bucket == float("inf") else str(bucket)
                        lines.append(
                            f"{data['name']}_bucket{_format_labels({**data['labels'], 'le': le})} {count}"
                        )
                    lines.append(f"{data['name']}_sum{label_str} {data['sum']}")
                    lines.append(f"{data['name']}_count{label_str} {data['count']}")
                else:
                    lines.append(f"{data['name']}{label_str} {data['value']}")
        return "\n".join(lines)


def _format_labels(labels: dict[str, str]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in labels.items()) + "}"


class FleetMetrics:
    """Pre-defined orchestrator metrics."""

    def __init__(self, registry: MetricsRegistry | None = None):
        reg = registry or _default_registry
        self.registry = reg

        self.scheduler_runs = reg.counter(
            "fleet_scheduler_runs_total", "Completed scheduler ticks"
        )
        self.scheduler_errors = reg.counter(
            "fleet_scheduler_errors_total", "Errors recorded by the scheduler"
        )
        self.tasks_generated = reg.counter(
            "fleet_tasks_generated_total", "Tasks created by the scheduler", ["task_type"]
        )
        self.tick_duration = reg.histogram(
            "fleet_scheduler_tick_duration_seconds", "Wall time of one scheduler tick"
        )
        self.next_run = reg.gauge(
            "fleet_policy_next_run_timestamp_seconds",
            "Unix time of the next run per policy and task type",
            ["policy_id", "task_type"],
        )
        self.tasks_claimed = reg.counter(
            "fleet_tasks_claimed_total", "Tasks handed to agents"
        )
        self.task_results = reg.counter(
            "fleet_task_results_total", "Task results by outcome", ["outcome"]
        )


_default_registry = MetricsRegistry()


def get_metrics_registry() -> MetricsRegistry:
    """Get the default metrics registry."""
    return _default_registry


__all__ = [
    "Counter",
    "FleetMetrics",
    "Gauge",
    "Histogram",
    "Labels",
    "MetricsRegistry",
    "get_metrics_registry",
]
