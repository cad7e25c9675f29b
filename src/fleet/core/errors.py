"""
Structured error types for fleet-core.

Provides a typed error hierarchy with metadata for retry decisions, error
categorisation, and operator-facing reporting.

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different domains
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry metadata for logging
    - **Error Chaining:** Preserve original exceptions while adding context

    The scheduler never lets one of these escape its tick: a bad schedule
    string or a failed state write is recorded in metrics and logged, and
    the loop carries on with the next policy.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       FleetError                                 │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  SchedulerError          DatabaseError       NotFoundError       │
        │  (ORCHESTRATION)         (DATABASE)          (NOT_FOUND)         │
        │       │                       │                   │              │
        │  ScheduleParseError      StateStoreError     TaskNotFoundError   │
        │  SchedulerAlready-                           AgentNotFoundError  │
        │    RunningError                              PolicyNotFoundError │
        │  PolicyDisabledError                                             │
        │                                                                  │
        │  ConfigError             InvalidTransitionError                  │
        │  (CONFIG)                (VALIDATION, also ValueError)           │
        └─────────────────────────────────────────────────────────────────┘

Tags:
    errors, exceptions, error-hierarchy, retry-logic, fleet-core

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        DATABASE: Persistence read/write failures
        ORCHESTRATION: Scheduler and schedule configuration errors
        VALIDATION: Illegal state transitions, malformed input
        NOT_FOUND: Missing or foreign-owned entities
        CONFIG: Missing config, invalid settings
        INTERNAL: Bugs, unexpected state
    """

    DATABASE = "DATABASE"
    ORCHESTRATION = "ORCHESTRATION"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error."""

    policy_id: str | None = None
    task_id: str | None = None
    agent_id: str | None = None
    task_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting empty fields."""
        result: dict[str, Any] = {}
        for key in ("policy_id", "task_id", "agent_id", "task_type"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FleetError(Exception):
    """
    Base exception for all fleet-core errors.

    All FleetError instances carry:
    - **category:** ErrorCategory enum for classification
    - **retryable:** Whether the operation can be retried
    - **context:** ErrorContext with structured metadata
    - **cause:** Optional underlying exception for chaining

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = FleetError("boom", category=ErrorCategory.DATABASE)
        >>> error.to_dict()["category"]
        'DATABASE'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FleetError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StateStoreError("write failed").with_context(
                policy_id=str(policy.id), task_type="backup"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SCHEDULER ERRORS
# =============================================================================


class SchedulerError(FleetError):
    """Scheduler or schedule configuration error."""

    default_category = ErrorCategory.ORCHESTRATION


class ScheduleParseError(SchedulerError):
    """Malformed cron or interval schedule string."""

    def __init__(self, schedule: str, reason: str, **kwargs: Any):
        self.schedule = schedule
        self.reason = reason
        super().__init__(f"invalid schedule {schedule!r}: {reason}", **kwargs)


class SchedulerAlreadyRunningError(SchedulerError):
    """start() called on a scheduler whose loop is already active."""

    def __init__(self, message: str = "scheduler already running", **kwargs: Any):
        super().__init__(message, **kwargs)


class PolicyDisabledError(SchedulerError):
    """Tasks requested for a policy that is disabled."""

    def __init__(self, policy_id: str, **kwargs: Any):
        self.policy_id = policy_id
        super().__init__(
            f"policy is disabled: {policy_id}",
            context=ErrorContext(policy_id=policy_id),
            **kwargs,
        )


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class DatabaseError(FleetError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE


class StateStoreError(DatabaseError):
    """Read or write of a policy task state row failed."""

    default_retryable = True


# =============================================================================
# LOOKUP ERRORS
# =============================================================================


class NotFoundError(FleetError):
    """Entity does not exist, or is not visible to the caller."""

    default_category = ErrorCategory.NOT_FOUND


class TaskNotFoundError(NotFoundError):
    """Task does not exist or belongs to another agent."""

    def __init__(self, task_id: str, agent_id: str | None = None, **kwargs: Any):
        self.task_id = task_id
        self.agent_id = agent_id
        super().__init__(
            f"task not found: {task_id}",
            context=ErrorContext(task_id=task_id, agent_id=agent_id),
            **kwargs,
        )


class AgentNotFoundError(NotFoundError):
    """Agent does not exist."""

    def __init__(self, agent_id: str, **kwargs: Any):
        self.agent_id = agent_id
        super().__init__(
            f"agent not found: {agent_id}",
            context=ErrorContext(agent_id=agent_id),
            **kwargs,
        )


class PolicyNotFoundError(NotFoundError):
    """Policy does not exist."""

    def __init__(self, policy_id: str, **kwargs: Any):
        self.policy_id = policy_id
        super().__init__(
            f"policy not found: {policy_id}",
            context=ErrorContext(policy_id=policy_id),
            **kwargs,
        )


# =============================================================================
# STATE MACHINE / CONFIG ERRORS
# =============================================================================


class InvalidTransitionError(FleetError, ValueError):
    """Raised when an illegal task status transition is attempted."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, current: str, target: str, enum_name: str = "TaskStatus") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current} → {target}")


class ConfigError(FleetError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG


__all__ = [
    "AgentNotFoundError",
    "ConfigError",
    "DatabaseError",
    "ErrorCategory",
    "ErrorContext",
    "FleetError",
    "InvalidTransitionError",
    "NotFoundError",
    "PolicyDisabledError",
    "PolicyNotFoundError",
    "ScheduleParseError",
    "SchedulerAlreadyRunningError",
    "SchedulerError",
    "StateStoreError",
    "TaskNotFoundError",
]
