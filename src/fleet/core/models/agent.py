"""Agent table models (``agents``, ``agent_policy_links``).

Tags:
    fleet-core, models, agent, dataclasses

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AgentStatus(str, Enum):
    """Agent connectivity status."""

    PENDING = "pending"  # registered, never heartbeated
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class Agent:
    """Fleet member row (``agents``).

    ``tasks_in_backoff`` and ``earliest_retry_at`` are a cached aggregate
    over the agent's pending tasks, recomputed on heartbeat.
    """

    id: str = ""
    hostname: str = ""
    status: AgentStatus = AgentStatus.PENDING
    last_seen_at: datetime | None = None
    max_concurrent_tasks: int = 1
    tasks_in_backoff: int = 0
    earliest_retry_at: datetime | None = None
    created_at: str = ""
    updated_at: str = ""
