"""
Fleet - backup agent fleet orchestration.

- fleet.core: storage, models, errors, logging, settings, scheduling
- fleet.execution: task claim / acknowledge / result and retry backoff
- fleet.observability: Prometheus-style metrics
- fleet.cli: the ``fleet-core`` command
"""

__version__ = "0.1.0"
