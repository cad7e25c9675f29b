"""Base repository with dialect-aware database access.

Provides :class:`BaseRepository`, a base class that pairs a
:class:`~fleet.core.protocols.Connection` with a :class:`~fleet.core.dialect.Dialect`
so that domain repositories can write **portable** SQL without referencing
any specific database driver.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection        ← protocol from fleet.core.protocols     │
    │   dialect: Dialect        ← from fleet.core.dialect                │
    │                                                                    │
    │   execute(sql, params)     → cursor                                │
    │   query(sql, params)       → list[dict]                            │
    │   query_one(sql, params)   → dict | None                           │
    │   insert(table, data)      → cursor                                │
    └────────────────────────────────────────────────────────────────────┘

Usage:
    >>> class AgentRepo(BaseRepository):
    ...     def get(self, agent_id: str):
    ...         return self.query_one(
    ...             f"SELECT * FROM agents WHERE id = {self.ph(1)}",
    ...             (agent_id,),
    ...         )

Tags:
    repository, database, abstraction, portability
"""

from __future__ import annotations

from typing import Any

from fleet.core.database import connection_lock
from fleet.core.dialect import Dialect, SQLiteDialect
from fleet.core.protocols import Connection


class BaseRepository:
    """Dialect-aware base class for data-access repositories.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect to use.  Defaults to :class:`SQLiteDialect`.
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self._lock = connection_lock(conn)

    # -- Convenience shortcuts ---------------------------------------------

    def ph(self, count: int) -> str:
        """Shortcut for ``self.dialect.placeholders(count)``.

        Embed directly in f-strings:

            f"SELECT * FROM tasks WHERE id = {self.ph(1)}"
        """
        return self.dialect.placeholders(count)

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor/result."""
        with self._lock:
            return self.conn.execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts.

        ``dict(row)`` covers ``sqlite3.Row`` and dict cursors; plain tuple
        rows are zipped against ``cursor.description``.
        """
        with self._lock:
            cursor = self.conn.execute(sql, params)
            rows = cursor.fetchall()
        if not rows:
            return []

        try:
            return [dict(row) for row in rows]
        except (TypeError, ValueError):
            pass

        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    # -- Insert helpers ----------------------------------------------------

    def insert(self, table: str, data: dict[str, Any]) -> Any:
        """Insert a single row from a dict."""
        columns = list(data.keys())
        values = list(data.values())
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({self.ph(len(values))})"
        with self._lock:
            return self.conn.execute(sql, tuple(values))

    def commit(self) -> None:
        """Commit the current transaction."""
        with self._lock:
            self.conn.commit()


__all__ = [
    "BaseRepository",
]
