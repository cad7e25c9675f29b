"""Tests for fleet.core.errors module."""

import pytest

from fleet.core.errors import (
    AgentNotFoundError,
    ConfigError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    FleetError,
    InvalidTransitionError,
    NotFoundError,
    PolicyDisabledError,
    PolicyNotFoundError,
    ScheduleParseError,
    SchedulerAlreadyRunningError,
    SchedulerError,
    StateStoreError,
    TaskNotFoundError,
)


class TestErrorContext:
    def test_to_dict_omits_empty(self):
        assert ErrorContext().to_dict() == {}

    def test_to_dict_merges_metadata(self):
        ctx = ErrorContext(policy_id="p1", task_type="backup", metadata={"attempt": 2})
        assert ctx.to_dict() == {"policy_id": "p1", "task_type": "backup", "attempt": 2}


class TestFleetError:
    def test_defaults(self):
        err = FleetError("boom")
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False
        assert err.cause is None

    def test_cause_is_chained(self):
        cause = OSError("disk")
        err = FleetError("wrapped", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "disk"

    def test_with_context_known_and_extra_keys(self):
        err = FleetError("x").with_context(agent_id="a1", host="db-1")
        assert err.context.agent_id == "a1"
        assert err.context.metadata == {"host": "db-1"}

    def test_to_dict(self):
        err = StateStoreError("write failed").with_context(policy_id="p1")
        assert err.to_dict() == {
            "error_type": "StateStoreError",
            "message": "write failed",
            "category": "DATABASE",
            "retryable": True,
            "context": {"policy_id": "p1"},
        }

    def test_explicit_overrides(self):
        err = DatabaseError("x", retryable=True, category=ErrorCategory.CONFIG)
        assert err.retryable is True
        assert err.category == ErrorCategory.CONFIG


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "parent", "category"),
        [
            (ScheduleParseError("bad", "why"), SchedulerError, ErrorCategory.ORCHESTRATION),
            (SchedulerAlreadyRunningError(), SchedulerError, ErrorCategory.ORCHESTRATION),
            (PolicyDisabledError("p1"), SchedulerError, ErrorCategory.ORCHESTRATION),
            (StateStoreError("x"), DatabaseError, ErrorCategory.DATABASE),
            (TaskNotFoundError("t1"), NotFoundError, ErrorCategory.NOT_FOUND),
            (AgentNotFoundError("a1"), NotFoundError, ErrorCategory.NOT_FOUND),
            (PolicyNotFoundError("p1"), NotFoundError, ErrorCategory.NOT_FOUND),
            (ConfigError("x"), FleetError, ErrorCategory.CONFIG),
        ],
    )
    def test_category_and_parent(self, error, parent, category):
        assert isinstance(error, parent)
        assert error.category == category

    def test_schedule_parse_error_message(self):
        err = ScheduleParseError("every 0m", "interval must be at least 1")
        assert str(err) == "invalid schedule 'every 0m': interval must be at least 1"
        assert err.schedule == "every 0m"
        assert err.reason == "interval must be at least 1"

    def test_not_found_context(self):
        err = TaskNotFoundError("t1", agent_id="a1")
        assert err.context.to_dict() == {"task_id": "t1", "agent_id": "a1"}
        assert PolicyNotFoundError("p9").context.policy_id == "p9"

    def test_invalid_transition_is_value_error(self):
        err = InvalidTransitionError("completed", "pending")
        assert isinstance(err, ValueError)
        assert err.category == ErrorCategory.VALIDATION
        assert "completed" in str(err) and "pending" in str(err)
