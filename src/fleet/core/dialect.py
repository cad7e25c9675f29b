"""SQL dialect abstraction for database-agnostic domain code.

Provides a ``Dialect`` protocol and the SQLite implementation.  Repositories
use ``Dialect`` methods to generate SQL fragments (placeholders, upserts,
transaction control) without importing or referencing any specific
database driver.

Manifesto:
    The scheduler and the task lifecycle need two backend-specific things:
    an atomic upsert for ``policy_task_states`` and a write transaction
    that serialises concurrent claims.  Both are spelled per backend, so
    both live here.

Architecture::

    Domain Code:
    ┌────────────────────────────────────────────────────────────────┐
    │  sql = d.upsert("policy_task_states", cols, keys)              │
    │  conn.execute(d.begin_write())                                 │
    │  conn.execute("SELECT ... WHERE status = ?", params)           │
    └────────────────────────────────────────────────────────────────┘
                              │
                              ▼
              ┌──────────────────────────┐
              │ SQLiteDialect            │
              │ ?, ?, ?                  │
              │ ON CONFLICT DO UPDATE    │
              │ BEGIN IMMEDIATE          │
              └──────────────────────────┘

Examples:
    >>> from fleet.core.dialect import SQLiteDialect
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.begin_write()
    'BEGIN IMMEDIATE'

Guardrails:
    ❌ DON'T: Write backend-specific SQL in domain repositories
    ✅ DO: Use Dialect methods for placeholders, upserts, transactions

Tags:
    dialect, sql, abstraction, portability, database, fleet-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** (string) that is valid for
    the target database.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        update_columns: list[str] | None = None,
    ) -> str:
        """``INSERT … ON CONFLICT (keys) DO UPDATE`` for *update_columns*.

        *update_columns* defaults to every non-key column.
        """
        ...

    def begin_write(self) -> str:
        """Statement that opens a transaction holding the write lock."""
        ...

    def boolean_true(self) -> str:
        """SQL literal for boolean true."""
        ...


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, ``BEGIN IMMEDIATE``."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        update_columns: list[str] | None = None,
    ) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        keys = ", ".join(key_columns)
        update_cols = update_columns or [c for c in columns if c not in key_columns]
        updates = ", ".join(f"{c} = excluded.{c}" for c in update_cols)
        return (
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) "
            f"ON CONFLICT ({keys}) DO UPDATE SET {updates}"
        )

    def begin_write(self) -> str:
        # Takes the database write lock up front, so the read half of a
        # read-then-update sequence is already serialised.
        return "BEGIN IMMEDIATE"

    def boolean_true(self) -> str:
        return "1"


__all__ = [
    "Dialect",
    "SQLiteDialect",
]
