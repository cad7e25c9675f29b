"""Policy task state store: one schedule cursor per (policy, task type).

Manifesto:
    The cursor row is what makes task generation exactly-once per due
    window across restarts: ``next_run`` is persisted after every
    generation, so a restarted scheduler picks up where the last one left
    off instead of re-firing.

    Writes go through a single ``INSERT … ON CONFLICT DO UPDATE`` so the
    seed-then-advance sequence within one tick never double-inserts.
    Storage failures surface as :class:`StateStoreError`.

Tags:
    fleet-core, scheduling, state, upsert

Doc-Types:
    api-reference
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fleet.core.errors import StateStoreError
from fleet.core.models.scheduler import PolicyTaskState
from fleet.core.repository import BaseRepository
from fleet.core.timestamps import from_iso8601, to_iso8601, utc_now

_COLUMNS = ["policy_id", "task_type", "last_run", "next_run", "created_at", "updated_at"]


def _row_to_state(row: dict[str, Any]) -> PolicyTaskState:
    return PolicyTaskState(
        policy_id=row["policy_id"],
        task_type=row["task_type"],
        last_run=from_iso8601(row["last_run"]),
        next_run=from_iso8601(row["next_run"]),
        created_at=from_iso8601(row["created_at"]),
        updated_at=from_iso8601(row["updated_at"]),
    )


class PolicyTaskStateStore(BaseRepository):
    """Read and upsert ``policy_task_states`` rows."""

    TABLE = "policy_task_states"

    def get(self, policy_id: str, task_type: str) -> PolicyTaskState | None:
        """Stored state for the pair, or None if never evaluated."""
        try:
            row = self.query_one(
                f"SELECT * FROM {self.TABLE} "
                f"WHERE policy_id = {self.ph(1)} AND task_type = {self.ph(1)}",
                (policy_id, task_type),
            )
        except Exception as e:
            raise StateStoreError(
                f"failed to read state for {policy_id}/{task_type}", cause=e
            ).with_context(policy_id=policy_id, task_type=task_type) from e
        return _row_to_state(row) if row else None

    def get_or_new(self, policy_id: str, task_type: str) -> PolicyTaskState:
        """Stored state, or an unsaved empty one for a pair seen for the first time."""
        state = self.get(policy_id, task_type)
        if state is None:
            state = PolicyTaskState(policy_id=policy_id, task_type=task_type)
        return state

    def save(self, state: PolicyTaskState) -> PolicyTaskState:
        """Insert or update the row for ``(state.policy_id, state.task_type)``."""
        now = utc_now()
        state.created_at = state.created_at or now
        state.updated_at = now
        sql = self.dialect.upsert(
            self.TABLE,
            _COLUMNS,
            ["policy_id", "task_type"],
            update_columns=["last_run", "next_run", "updated_at"],
        )
        try:
            self.execute(
                sql,
                (
                    state.policy_id,
                    state.task_type,
                    to_iso8601(state.last_run),
                    to_iso8601(state.next_run),
                    to_iso8601(state.created_at),
                    to_iso8601(state.updated_at),
                ),
            )
            self.commit()
        except Exception as e:
            raise StateStoreError(
                f"failed to save state for {state.policy_id}/{state.task_type}", cause=e
            ).with_context(policy_id=state.policy_id, task_type=state.task_type) from e
        return state

    def list_for_policy(self, policy_id: str) -> list[PolicyTaskState]:
        rows = self.query(
            f"SELECT * FROM {self.TABLE} WHERE policy_id = {self.ph(1)} ORDER BY task_type",
            (policy_id,),
        )
        return [_row_to_state(r) for r in rows]

    def list_all(self) -> list[PolicyTaskState]:
        rows = self.query(f"SELECT * FROM {self.TABLE} ORDER BY policy_id, task_type")
        return [_row_to_state(r) for r in rows]

    def next_run(self, policy_id: str, task_type: str) -> datetime | None:
        state = self.get(policy_id, task_type)
        return state.next_run if state else None


__all__ = ["PolicyTaskStateStore"]
