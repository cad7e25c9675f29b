"""Tests for BaseRepository and the orchestrator repositories."""

from datetime import timedelta

import pytest

from fleet.core.models import Agent, AgentStatus, Policy, RetentionRules, Task, TaskStatus, TaskType
from fleet.core.repository import BaseRepository


class TestBaseRepository:
    def test_query_returns_dicts(self, db_conn):
        repo = BaseRepository(db_conn)
        repo.insert("agents", {
            "id": "a1",
            "hostname": "h",
            "created_at": "2024-01-01T00:00:00.000000+00:00",
            "updated_at": "2024-01-01T00:00:00.000000+00:00",
        })
        repo.commit()

        rows = repo.query(f"SELECT id, hostname FROM agents WHERE id = {repo.ph(1)}", ("a1",))
        assert rows == [{"id": "a1", "hostname": "h"}]

    def test_query_one_missing(self, db_conn):
        repo = BaseRepository(db_conn)
        assert repo.query_one("SELECT * FROM agents WHERE id = ?", ("nope",)) is None

    def test_default_dialect_is_sqlite(self, db_conn):
        assert BaseRepository(db_conn).dialect.name == "sqlite"


class TestPolicyRepository:
    def test_create_and_get_round_trips_json_columns(self, policies):
        created = policies.create(
            Policy(
                name="db-servers",
                schedule="0 2 * * *",
                check_schedule="every 6h",
                repository_url="rest:https://backup.example/db",
                include_paths=("/var/lib/postgresql",),
                exclude_paths=("*.tmp",),
                retention=RetentionRules(keep_daily=7, keep_monthly=12),
                max_retries=5,
            )
        )

        loaded = policies.get(created.id)
        assert loaded.name == "db-servers"
        assert loaded.enabled is True
        assert loaded.check_schedule == "every 6h"
        assert loaded.prune_schedule is None
        assert loaded.include_paths == ("/var/lib/postgresql",)
        assert loaded.exclude_paths == ("*.tmp",)
        assert loaded.retention == RetentionRules(keep_daily=7, keep_monthly=12)
        assert loaded.max_retries == 5

    def test_list_enabled_filters_and_orders(self, policies, make_policy):
        make_policy(name="zeta")
        make_policy(name="alpha")
        make_policy(name="off", enabled=False)

        assert [p.name for p in policies.list_enabled()] == ["alpha", "zeta"]
        assert len(policies.list_all()) == 3

    def test_set_enabled(self, policies, make_policy):
        policy = make_policy()
        assert policies.set_enabled(policy.id, False) is True
        assert policies.get(policy.id).enabled is False
        assert policies.set_enabled("missing", True) is False

    def test_assignments(self, policies, make_policy, make_agent):
        b = make_agent("b-host")
        a = make_agent("a-host")
        policy = make_policy(assigned=[b, a])
        policies.assign_agent(policy.id, a.id)  # idempotent

        assert [x.hostname for x in policies.agents_for_policy(policy.id)] == ["a-host", "b-host"]

        policies.unassign_agent(policy.id, b.id)
        assert [x.id for x in policies.agents_for_policy(policy.id)] == [a.id]

    def test_schedules_pairs(self):
        policy = Policy(schedule="every 1h", prune_schedule="0 3 * * 0")
        assert policy.schedules() == [("backup", "every 1h"), ("prune", "0 3 * * 0")]


class TestAgentRepository:
    def test_create_defaults(self, agents):
        agent = agents.create(Agent(hostname="web-1"))
        loaded = agents.get(agent.id)
        assert loaded.status == AgentStatus.PENDING
        assert loaded.tasks_in_backoff == 0
        assert agents.exists(agent.id)
        assert not agents.exists("missing")

    def test_record_seen_and_backoff(self, agents, t0):
        agent = agents.create(Agent(hostname="web-1"))

        assert agents.record_seen(agent.id, t0) is True
        assert agents.update_backoff(agent.id, 2, t0 + timedelta(seconds=5)) is True

        loaded = agents.get(agent.id)
        assert loaded.status == AgentStatus.ONLINE
        assert loaded.last_seen_at == t0
        assert loaded.tasks_in_backoff == 2
        assert loaded.earliest_retry_at == t0 + timedelta(seconds=5)

    def test_updates_on_missing_agent(self, agents, t0):
        assert agents.record_seen("ghost", t0) is False
        assert agents.update_backoff("ghost", 0, None) is False


class TestTaskRepository:
    def test_create_and_get(self, tasks, make_agent, t0):
        agent = make_agent()
        task = tasks.create(
            Task(
                agent_id=agent.id,
                task_type=TaskType.CHECK,
                scheduled_for=t0,
                retention=RetentionRules(keep_last=1),
            )
        )

        loaded = tasks.get(task.id)
        assert loaded.task_type == TaskType.CHECK
        assert loaded.status == TaskStatus.PENDING
        assert loaded.scheduled_for == t0
        assert loaded.retention == RetentionRules(keep_last=1)
        assert loaded.policy_id is None

    def test_get_for_agent_checks_owner(self, tasks, make_agent):
        owner = make_agent("owner")
        other = make_agent("other")
        task = tasks.create(Task(agent_id=owner.id))

        assert tasks.get_for_agent(task.id, owner.id).id == task.id
        assert tasks.get_for_agent(task.id, other.id) is None

    def test_list_for_agent_status_filter(self, tasks, make_agent, t0):
        agent = make_agent()
        pending = tasks.create(Task(agent_id=agent.id, scheduled_for=t0))
        done = tasks.create(
            Task(agent_id=agent.id, scheduled_for=t0, status=TaskStatus.COMPLETED)
        )

        assert [t.id for t in tasks.list_for_agent(agent.id, TaskStatus.PENDING)] == [pending.id]
        assert {t.id for t in tasks.list_for_agent(agent.id)} == {pending.id, done.id}

    def test_guarded_update(self, tasks, make_agent, t0):
        agent = make_agent()
        task = tasks.create(Task(agent_id=agent.id))

        assert tasks.mark_assigned(task.id, t0) is True
        assert tasks.mark_assigned(task.id, t0) is False
        assert tasks.update_fields(
            task.id, {"status": "in-progress"}, expected_status=TaskStatus.PENDING
        ) is False
        assert tasks.update_fields(
            task.id, {"status": "in-progress"}, expected_status=TaskStatus.ASSIGNED
        ) is True
        assert tasks.get(task.id).status == TaskStatus.IN_PROGRESS

    def test_backoff_aggregate(self, tasks, make_agent, t0):
        agent = make_agent()
        for seconds in (30, 10):
            tasks.create(Task(agent_id=agent.id, next_retry_at=t0 + timedelta(seconds=seconds)))
        tasks.create(Task(agent_id=agent.id, next_retry_at=t0 - timedelta(seconds=1)))
        tasks.create(Task(agent_id=agent.id))

        assert tasks.backoff_aggregate(agent.id, t0) == (2, t0 + timedelta(seconds=10))
        assert tasks.backoff_aggregate(agent.id, t0 + timedelta(minutes=1)) == (0, None)

    def test_unknown_status_value_rejected(self):
        with pytest.raises(ValueError):
            TaskStatus("running")
