"""Policy repository: policies and their agent assignments.

Tags:
    fleet-core, repository, policy

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from fleet.core.models.agent import Agent
from fleet.core.models.policy import Policy
from fleet.core.repositories._helpers import (
    _dump_paths,
    _dump_retention,
    _load_paths,
    _load_retention,
)
from fleet.core.repositories.agents import _row_to_agent
from fleet.core.repository import BaseRepository
from fleet.core.timestamps import to_iso8601, utc_now


def _row_to_policy(row: dict[str, Any]) -> Policy:
    return Policy(
        id=row["id"],
        name=row["name"],
        enabled=bool(row["enabled"]),
        schedule=row["schedule"],
        check_schedule=row["check_schedule"] or None,
        prune_schedule=row["prune_schedule"] or None,
        repository_url=row["repository_url"],
        include_paths=_load_paths(row["include_paths"]),
        exclude_paths=_load_paths(row["exclude_paths"]),
        retention=_load_retention(row["retention"]),
        max_retries=row["max_retries"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PolicyRepository(BaseRepository):
    """CRUD for ``policies`` and ``agent_policy_links``."""

    TABLE = "policies"
    LINKS = "agent_policy_links"

    def create(self, policy: Policy) -> Policy:
        """Insert *policy*, assigning an id when it has none."""
        now = to_iso8601(utc_now())
        policy.id = policy.id or str(uuid4())
        policy.created_at = policy.created_at or now
        policy.updated_at = now
        self.insert(
            self.TABLE,
            {
                "id": policy.id,
                "name": policy.name,
                "enabled": 1 if policy.enabled else 0,
                "schedule": policy.schedule,
                "check_schedule": policy.check_schedule,
                "prune_schedule": policy.prune_schedule,
                "repository_url": policy.repository_url,
                "include_paths": _dump_paths(policy.include_paths),
                "exclude_paths": _dump_paths(policy.exclude_paths),
                "retention": _dump_retention(policy.retention),
                "max_retries": policy.max_retries,
                "created_at": policy.created_at,
                "updated_at": policy.updated_at,
            },
        )
        self.commit()
        return policy

    def get(self, policy_id: str) -> Policy | None:
        row = self.query_one(
            f"SELECT * FROM {self.TABLE} WHERE id = {self.ph(1)}",
            (policy_id,),
        )
        return _row_to_policy(row) if row else None

    def list_enabled(self) -> list[Policy]:
        """All policies with ``enabled = true``, ordered by name."""
        rows = self.query(
            f"SELECT * FROM {self.TABLE} WHERE enabled = {self.dialect.boolean_true()} "
            f"ORDER BY name ASC, id ASC"
        )
        return [_row_to_policy(r) for r in rows]

    def list_all(self) -> list[Policy]:
        rows = self.query(f"SELECT * FROM {self.TABLE} ORDER BY name ASC, id ASC")
        return [_row_to_policy(r) for r in rows]

    def set_enabled(self, policy_id: str, enabled: bool) -> bool:
        """Enable or disable a policy. Returns False if it does not exist."""
        cursor = self.execute(
            f"UPDATE {self.TABLE} SET enabled = {self.ph(1)}, updated_at = {self.ph(1)} "
            f"WHERE id = {self.ph(1)}",
            (1 if enabled else 0, to_iso8601(utc_now()), policy_id),
        )
        self.commit()
        return cursor.rowcount > 0

    # -- Assignments ---------------------------------------------------------

    def assign_agent(self, policy_id: str, agent_id: str) -> None:
        """Link *agent_id* to *policy_id* (idempotent)."""
        self.execute(
            f"INSERT INTO {self.LINKS} (agent_id, policy_id, created_at) "
            f"VALUES ({self.ph(3)}) ON CONFLICT (agent_id, policy_id) DO NOTHING",
            (agent_id, policy_id, to_iso8601(utc_now())),
        )
        self.commit()

    def unassign_agent(self, policy_id: str, agent_id: str) -> bool:
        cursor = self.execute(
            f"DELETE FROM {self.LINKS} WHERE agent_id = {self.ph(1)} AND policy_id = {self.ph(1)}",
            (agent_id, policy_id),
        )
        self.commit()
        return cursor.rowcount > 0

    def agents_for_policy(self, policy_id: str) -> list[Agent]:
        """Agents assigned to *policy_id*, ordered by hostname."""
        rows = self.query(
            f"SELECT a.* FROM agents a "
            f"JOIN {self.LINKS} l ON l.agent_id = a.id "
            f"WHERE l.policy_id = {self.ph(1)} "
            f"ORDER BY a.hostname ASC, a.id ASC",
            (policy_id,),
        )
        return [_row_to_agent(r) for r in rows]
