"""Observability for fleet-core: Prometheus-style metrics."""

from fleet.observability.metrics import (
    Counter,
    FleetMetrics,
    Gauge,
    Histogram,
    MetricsRegistry,
    get_metrics_registry,
)

__all__ = [
    "Counter",
    "FleetMetrics",
    "Gauge",
    "Histogram",
    "MetricsRegistry",
    "get_metrics_registry",
]
