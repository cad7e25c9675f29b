"""
Canonical protocol definitions for fleet-core.

Every repository in fleet-core talks to storage through the ``Connection``
protocol defined here, never through a concrete driver.

Manifesto:
    The persistence engine is an external collaborator.  Domain code depends
    on the *shape* of a DB-API connection (execute, commit, rollback), so the
    same scheduler and task lifecycle run against SQLite in tests and a
    server database in production without modification.

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        └── Connection          - sync DB protocol (sqlite3)

    Consumers:
        core/repository.py, core/database.py, core/schema.py,
        core/scheduling/state.py, core/repositories/*

Guardrails:
    ❌ DON'T: Duplicate Connection(Protocol) in other modules
    ✅ DO: Import from fleet.core.protocols (single source of truth)

    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts

Tags:
    protocol, connection, database, fleet-core, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface for database operations.

    ``sqlite3.Connection`` satisfies it natively; ``execute`` returns a
    DB-API cursor exposing ``fetchone``/``fetchall``/``rowcount``.

    Examples:
        >>> cursor = conn.execute("SELECT * FROM tasks WHERE id = ?", ("t-1",))
        >>> row = cursor.fetchone()
        >>> conn.commit()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters. SYNC."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets. SYNC."""
        ...

    def commit(self) -> None:
        """Commit current transaction. SYNC."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction. SYNC."""
        ...


__all__ = ["Connection"]
