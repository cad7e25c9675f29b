"""Shared pytest fixtures for fleet-core tests."""

from datetime import UTC, datetime

import pytest

from fleet.core.database import connect
from fleet.core.models import Agent, Policy, RetentionRules
from fleet.core.repositories import AgentRepository, PolicyRepository, TaskRepository
from fleet.core.schema import initialize_schema


@pytest.fixture
def db_conn():
    """In-memory SQLite database with the orchestrator schema."""
    conn = connect(":memory:")
    initialize_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def db_path(tmp_path):
    """File-backed database path with the schema applied (for multi-connection tests)."""
    path = tmp_path / "fleet.db"
    conn = connect(path)
    initialize_schema(conn)
    conn.close()
    return path


@pytest.fixture
def policies(db_conn):
    return PolicyRepository(db_conn)


@pytest.fixture
def agents(db_conn):
    return AgentRepository(db_conn)


@pytest.fixture
def tasks(db_conn):
    return TaskRepository(db_conn)


class FakeClock:
    """Settable clock for driving time-dependent code deterministically."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture
def t0():
    """Fixed reference instant: 2024-01-01 10:30 UTC."""
    return datetime(2024, 1, 1, 10, 30, tzinfo=UTC)


@pytest.fixture
def clock(t0):
    return FakeClock(t0)


@pytest.fixture
def make_agent(agents):
    def _make(hostname: str = "host-1", **kwargs) -> Agent:
        return agents.create(Agent(hostname=hostname, **kwargs))

    return _make


@pytest.fixture
def make_policy(policies):
    """Create a policy and assign it to the given agents."""

    def _make(
        schedule: str = "every 1m",
        *,
        assigned: list[Agent] = (),
        name: str = "nightly",
        **kwargs,
    ) -> Policy:
        kwargs.setdefault("repository_url", "s3:backups/main")
        kwargs.setdefault("include_paths", ("/etc", "/home"))
        kwargs.setdefault("retention", RetentionRules(keep_daily=7))
        policy = policies.create(Policy(name=name, schedule=schedule, **kwargs))
        for agent in assigned:
            policies.assign_agent(policy.id, agent.id)
        return policy

    return _make
