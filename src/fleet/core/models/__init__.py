"""Typed records for fleet-core tables.

Tags:
    fleet-core, models, dataclasses

Doc-Types:
    package-overview, data-model
"""

from fleet.core.models.agent import Agent, AgentStatus
from fleet.core.models.policy import DEFAULT_MAX_RETRIES, Policy, RetentionRules
from fleet.core.models.scheduler import PolicyTaskState
from fleet.core.models.task import (
    TASK_VALID_TRANSITIONS,
    Task,
    TaskStatus,
    TaskType,
    validate_task_transition,
)

__all__ = [
    "Agent",
    "AgentStatus",
    "DEFAULT_MAX_RETRIES",
    "Policy",
    "PolicyTaskState",
    "RetentionRules",
    "TASK_VALID_TRANSITIONS",
    "Task",
    "TaskStatus",
    "TaskType",
    "validate_task_transition",
]
