"""Task repository: task rows, claim queries, backoff queries.

Methods that take part in a claim or a status change (``select_claimable``,
``mark_assigned``, ``update_fields``) never commit: the caller frames them
with :func:`fleet.core.database.transaction`.

Tags:
    fleet-core, repository, task, claim, backoff

Doc-Types:
    api-reference
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from fleet.core.models.task import Task, TaskStatus, TaskType
from fleet.core.repositories._helpers import (
    _build_set,
    _dump_paths,
    _dump_retention,
    _load_paths,
    _load_retention,
)
from fleet.core.repository import BaseRepository
from fleet.core.timestamps import from_iso8601, to_iso8601, utc_now


def _row_to_task(row: dict[str, Any]) -> Task:
    return Task(
        id=row["id"],
        agent_id=row["agent_id"],
        policy_id=row["policy_id"],
        task_type=TaskType(row["task_type"]),
        status=TaskStatus(row["status"]),
        repository=row["repository"],
        include_paths=_load_paths(row["include_paths"]),
        exclude_paths=_load_paths(row["exclude_paths"]),
        retention=_load_retention(row["retention"]),
        scheduled_for=from_iso8601(row["scheduled_for"]),
        assigned_at=from_iso8601(row["assigned_at"]),
        acknowledged_at=from_iso8601(row["acknowledged_at"]),
        started_at=from_iso8601(row["started_at"]),
        completed_at=from_iso8601(row["completed_at"]),
        error_message=row["error_message"],
        duration_seconds=row["duration_seconds"],
        snapshot_id=row["snapshot_id"],
        retry_count=row["retry_count"],
        max_retries=row["max_retries"],
        next_retry_at=from_iso8601(row["next_retry_at"]),
        last_error_category=row["last_error_category"],
        created_at=from_iso8601(row["created_at"]),
        updated_at=from_iso8601(row["updated_at"]),
    )


class TaskRepository(BaseRepository):
    """Access to the ``tasks`` table."""

    TABLE = "tasks"

    def create(self, task: Task) -> Task:
        """Insert a new task and commit."""
        now = utc_now()
        task.id = task.id or str(uuid4())
        task.created_at = task.created_at or now
        task.updated_at = now
        task.scheduled_for = task.scheduled_for or now
        self.insert(
            self.TABLE,
            {
                "id": task.id,
                "agent_id": task.agent_id,
                "policy_id": task.policy_id,
                "task_type": task.task_type.value,
                "status": task.status.value,
                "repository": task.repository,
                "include_paths": _dump_paths(task.include_paths),
                "exclude_paths": _dump_paths(task.exclude_paths),
                "retention": _dump_retention(task.retention),
                "scheduled_for": to_iso8601(task.scheduled_for),
                "retry_count": task.retry_count,
                "max_retries": task.max_retries,
                "next_retry_at": to_iso8601(task.next_retry_at),
                "created_at": to_iso8601(task.created_at),
                "updated_at": to_iso8601(task.updated_at),
            },
        )
        self.commit()
        return task

    def get(self, task_id: str) -> Task | None:
        row = self.query_one(
            f"SELECT * FROM {self.TABLE} WHERE id = {self.ph(1)}",
            (task_id,),
        )
        return _row_to_task(row) if row else None

    def get_for_agent(self, task_id: str, agent_id: str) -> Task | None:
        """Task *task_id* if it belongs to *agent_id*, else None."""
        row = self.query_one(
            f"SELECT * FROM {self.TABLE} WHERE id = {self.ph(1)} AND agent_id = {self.ph(1)}",
            (task_id, agent_id),
        )
        return _row_to_task(row) if row else None

    def list_for_agent(self, agent_id: str, status: TaskStatus | None = None) -> list[Task]:
        sql = f"SELECT * FROM {self.TABLE} WHERE agent_id = {self.ph(1)}"
        params: tuple = (agent_id,)
        if status is not None:
            sql += f" AND status = {self.ph(1)}"
            params += (status.value,)
        sql += " ORDER BY scheduled_for ASC, created_at ASC"
        return [_row_to_task(r) for r in self.query(sql, params)]

    def list_for_policy(self, policy_id: str, task_type: TaskType | None = None) -> list[Task]:
        sql = f"SELECT * FROM {self.TABLE} WHERE policy_id = {self.ph(1)}"
        params: tuple = (policy_id,)
        if task_type is not None:
            sql += f" AND task_type = {self.ph(1)}"
            params += (task_type.value,)
        sql += " ORDER BY created_at ASC"
        return [_row_to_task(r) for r in self.query(sql, params)]

    # -- Claim -----------------------------------------------------------------

    def select_claimable(self, agent_id: str, now: datetime, limit: int) -> list[Task]:
        """Pending tasks of *agent_id* that are not backing off, oldest first."""
        rows = self.query(
            f"SELECT * FROM {self.TABLE} "
            f"WHERE agent_id = {self.ph(1)} AND status = {self.ph(1)} "
            f"AND (next_retry_at IS NULL OR next_retry_at <= {self.ph(1)}) "
            f"ORDER BY scheduled_for ASC, created_at ASC "
            f"LIMIT {self.ph(1)}",
            (agent_id, TaskStatus.PENDING.value, to_iso8601(now), limit),
        )
        return [_row_to_task(r) for r in rows]

    def mark_assigned(self, task_id: str, now: datetime) -> bool:
        """Flip one task ``pending → assigned``; False if it was no longer pending."""
        ts = to_iso8601(now)
        cursor = self.execute(
            f"UPDATE {self.TABLE} SET status = {self.ph(1)}, assigned_at = {self.ph(1)}, "
            f"updated_at = {self.ph(1)} "
            f"WHERE id = {self.ph(1)} AND status = {self.ph(1)}",
            (TaskStatus.ASSIGNED.value, ts, ts, task_id, TaskStatus.PENDING.value),
        )
        return cursor.rowcount == 1

    def update_fields(
        self,
        task_id: str,
        updates: dict[str, Any],
        *,
        expected_status: TaskStatus | None = None,
    ) -> bool:
        """Write *updates* (already serialised) to one task.

        When *expected_status* is given the write only applies if the row
        still has that status.  Returns whether a row was changed.
        """
        updates = {**updates, "updated_at": to_iso8601(utc_now())}
        sets, params = _build_set(updates, self.ph(1))
        sql = f"UPDATE {self.TABLE} SET {sets} WHERE id = {self.ph(1)}"
        params += (task_id,)
        if expected_status is not None:
            sql += f" AND status = {self.ph(1)}"
            params += (expected_status.value,)
        cursor = self.execute(sql, params)
        return cursor.rowcount == 1

    # -- Backoff ---------------------------------------------------------------

    def backoff_aggregate(self, agent_id: str, now: datetime) -> tuple[int, datetime | None]:
        """Count and earliest ``next_retry_at`` of the agent's backing-off tasks."""
        row = self.query_one(
            f"SELECT COUNT(*) AS cnt, MIN(next_retry_at) AS earliest FROM {self.TABLE} "
            f"WHERE agent_id = {self.ph(1)} AND status = {self.ph(1)} "
            f"AND next_retry_at IS NOT NULL AND next_retry_at > {self.ph(1)}",
            (agent_id, TaskStatus.PENDING.value, to_iso8601(now)),
        )
        if not row:
            return 0, None
        return int(row["cnt"] or 0), from_iso8601(row["earliest"])

    def list_backing_off(self, agent_id: str, now: datetime) -> list[Task]:
        """The agent's backing-off tasks, soonest retry first."""
        rows = self.query(
            f"SELECT * FROM {self.TABLE} "
            f"WHERE agent_id = {self.ph(1)} AND status = {self.ph(1)} "
            f"AND next_retry_at IS NOT NULL AND next_retry_at > {self.ph(1)} "
            f"ORDER BY next_retry_at ASC",
            (agent_id, TaskStatus.PENDING.value, to_iso8601(now)),
        )
        return [_row_to_task(r) for r in rows]
