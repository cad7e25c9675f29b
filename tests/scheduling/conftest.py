"""Pytest fixtures for scheduling tests."""

import pytest

from fleet.core.scheduling import (
    PolicyTaskStateStore,
    SchedulerMetrics,
    SchedulerService,
    ThreadSchedulerBackend,
)


@pytest.fixture
def state_store(db_conn):
    return PolicyTaskStateStore(db_conn)


@pytest.fixture
def scheduler_service(db_conn, clock):
    """SchedulerService over the in-memory database with a fake clock."""
    service = SchedulerService(
        db_conn,
        backend=ThreadSchedulerBackend(stop_timeout=2.0),
        metrics=SchedulerMetrics(clock=clock),
        clock=clock,
        interval_seconds=0.05,
    )
    yield service
    service.stop()
