"""Repositories over the orchestrator tables.

Tags:
    fleet-core, repository

Doc-Types:
    package-overview
"""

from fleet.core.repositories.agents import AgentRepository
from fleet.core.repositories.policies import PolicyRepository
from fleet.core.repositories.tasks import TaskRepository

__all__ = [
    "AgentRepository",
    "PolicyRepository",
    "TaskRepository",
]
