"""Agent repository: registration, heartbeats, backoff aggregate.

Tags:
    fleet-core, repository, agent

Doc-Types:
    api-reference
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from fleet.core.models.agent import Agent, AgentStatus
from fleet.core.repository import BaseRepository
from fleet.core.timestamps import from_iso8601, to_iso8601, utc_now


def _row_to_agent(row: dict[str, Any]) -> Agent:
    return Agent(
        id=row["id"],
        hostname=row["hostname"],
        status=AgentStatus(row["status"]),
        last_seen_at=from_iso8601(row["last_seen_at"]),
        max_concurrent_tasks=row["max_concurrent_tasks"],
        tasks_in_backoff=row["tasks_in_backoff"],
        earliest_retry_at=from_iso8601(row["earliest_retry_at"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class AgentRepository(BaseRepository):
    """CRUD for the ``agents`` table."""

    TABLE = "agents"

    def create(self, agent: Agent) -> Agent:
        now = to_iso8601(utc_now())
        agent.id = agent.id or str(uuid4())
        agent.created_at = agent.created_at or now
        agent.updated_at = now
        self.insert(
            self.TABLE,
            {
                "id": agent.id,
                "hostname": agent.hostname,
                "status": agent.status.value,
                "last_seen_at": to_iso8601(agent.last_seen_at),
                "max_concurrent_tasks": agent.max_concurrent_tasks,
                "tasks_in_backoff": agent.tasks_in_backoff,
                "earliest_retry_at": to_iso8601(agent.earliest_retry_at),
                "created_at": agent.created_at,
                "updated_at": agent.updated_at,
            },
        )
        self.commit()
        return agent

    def get(self, agent_id: str) -> Agent | None:
        row = self.query_one(
            f"SELECT * FROM {self.TABLE} WHERE id = {self.ph(1)}",
            (agent_id,),
        )
        return _row_to_agent(row) if row else None

    def exists(self, agent_id: str) -> bool:
        row = self.query_one(
            f"SELECT 1 AS present FROM {self.TABLE} WHERE id = {self.ph(1)}",
            (agent_id,),
        )
        return row is not None

    def record_seen(self, agent_id: str, when: datetime) -> bool:
        """Stamp ``last_seen_at`` and mark the agent online."""
        ts = to_iso8601(when)
        cursor = self.execute(
            f"UPDATE {self.TABLE} SET last_seen_at = {self.ph(1)}, status = {self.ph(1)}, "
            f"updated_at = {self.ph(1)} WHERE id = {self.ph(1)}",
            (ts, AgentStatus.ONLINE.value, ts, agent_id),
        )
        self.commit()
        return cursor.rowcount > 0

    def update_backoff(
        self,
        agent_id: str,
        tasks_in_backoff: int,
        earliest_retry_at: datetime | None,
    ) -> bool:
        """Store the cached backoff aggregate on the agent row."""
        cursor = self.execute(
            f"UPDATE {self.TABLE} SET tasks_in_backoff = {self.ph(1)}, "
            f"earliest_retry_at = {self.ph(1)}, updated_at = {self.ph(1)} "
            f"WHERE id = {self.ph(1)}",
            (tasks_in_backoff, to_iso8601(earliest_retry_at), to_iso8601(utc_now()), agent_id),
        )
        self.commit()
        return cursor.rowcount > 0
