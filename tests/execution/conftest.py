"""Pytest fixtures for task lifecycle tests."""

from datetime import timedelta

import pytest

from fleet.core.models import Task, TaskType
from fleet.execution import RetryBackoff, TaskLifecycle
from fleet.observability.metrics import FleetMetrics, MetricsRegistry


@pytest.fixture
def exporter():
    return FleetMetrics(MetricsRegistry())


@pytest.fixture
def lifecycle(db_conn, clock, exporter):
    return TaskLifecycle(
        db_conn,
        backoff=RetryBackoff(base_delay=5.0, multiplier=2.0),
        clock=clock,
        exporter=exporter,
    )


@pytest.fixture
def agent(make_agent):
    return make_agent("backup-01")


@pytest.fixture
def make_task(tasks, t0):
    """Insert a pending task; ``minutes`` offsets ``scheduled_for`` from t0."""

    def _make(agent_id: str, *, minutes: int = 0, **kwargs) -> Task:
        kwargs.setdefault("task_type", TaskType.BACKUP)
        kwargs.setdefault("repository", "s3:backups/main")
        return tasks.create(
            Task(agent_id=agent_id, scheduled_for=t0 + timedelta(minutes=minutes), **kwargs)
        )

    return _make
