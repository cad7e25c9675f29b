"""
fleet-core primitives: storage, models, errors, logging, settings, scheduling.

Tags:
    fleet-core, package-overview

Doc-Types:
    package-overview, module-index
"""

from fleet.core.errors import (
    AgentNotFoundError,
    ConfigError,
    FleetError,
    InvalidTransitionError,
    ScheduleParseError,
    SchedulerAlreadyRunningError,
    StateStoreError,
    TaskNotFoundError,
)

__all__ = [
    "AgentNotFoundError",
    "ConfigError",
    "FleetError",
    "InvalidTransitionError",
    "ScheduleParseError",
    "SchedulerAlreadyRunningError",
    "StateStoreError",
    "TaskNotFoundError",
]
