"""Scheduler table models (``policy_task_states``).

Manifesto:
    The schedule cursor is keyed by (policy, task type) so a policy's
    backup, check and prune schedules advance independently.

Tags:
    fleet-core, models, scheduling, dataclasses

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class PolicyTaskState:
    """Schedule cursor row (``policy_task_states``)."""

    policy_id: str = ""
    task_type: str = "backup"
    last_run: datetime | None = None
    next_run: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
