"""
SQLite connection and transaction helpers.

Manifesto:
    Repositories only see the ``Connection`` protocol.  This module is the
    one place that knows how a real connection is opened and how a write
    transaction is framed, so claim and upsert code stays driver-agnostic.

    - **connect():** sqlite3 with ``Row`` factory, busy timeout, foreign keys
    - **transaction():** dialect ``begin_write()`` then commit, or rollback
      and re-raise
    - **connection_lock():** one re-entrant lock per connection; a
      transaction holds it from BEGIN to COMMIT, and repository calls take
      it per statement, so threads sharing a connection never interleave
      inside an open transaction

Architecture:
    ::

        conn = connect("fleet.db")
        with transaction(conn, SQLiteDialect()):
            conn.execute("SELECT ... WHERE status = 'pending'")
            conn.execute("UPDATE ... WHERE id = ? AND status = 'pending'")
        # COMMIT issued; on exception ROLLBACK and the error propagates

    Connections are opened in autocommit mode (``isolation_level=None``):
    single statements commit immediately, and multi-statement work is
    framed explicitly through ``transaction()``.

Tags:
    database, sqlite, transaction, fleet-core

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from fleet.core.dialect import Dialect, SQLiteDialect
from fleet.core.errors import DatabaseError
from fleet.core.logging import get_logger
from fleet.core.protocols import Connection

logger = get_logger(__name__)

# for Connection implementations that do not carry their own lock
_SHARED_LOCK = threading.RLock()


class FleetConnection(sqlite3.Connection):
    """sqlite3 connection that carries the lock serialising its users."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.lock = threading.RLock()


def connection_lock(conn: Connection) -> threading.RLock:
    """The lock guarding *conn* across threads."""
    return getattr(conn, "lock", None) or _SHARED_LOCK


def connect(path: str | Path = ":memory:", *, timeout: float = 5.0) -> FleetConnection:
    """Open a SQLite connection configured for fleet-core.

    Args:
        path: Database file, ``":memory:"`` or a ``file:`` URI
        timeout: Seconds to wait on a locked database before failing

    Raises:
        DatabaseError: If the database cannot be opened
    """
    path = str(path)
    uri = path.startswith("file:")
    if not uri and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = sqlite3.connect(
            path,
            timeout=timeout,
            check_same_thread=False,
            isolation_level=None,
            uri=uri,
            factory=FleetConnection,
        )
    except sqlite3.Error as e:
        raise DatabaseError(f"Failed to connect to SQLite: {e}", cause=e) from e

    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    logger.debug("database_connected", path=path)
    return conn


@contextmanager
def transaction(conn: Connection, dialect: Dialect | None = None) -> Iterator[Connection]:
    """Run the enclosed statements in one write transaction.

    Commits on normal exit.  On any exception the transaction is rolled
    back and the exception re-raised unchanged.  The connection lock is
    held throughout, so other threads using *conn* wait for the commit.
    """
    dialect = dialect or SQLiteDialect()
    with connection_lock(conn):
        conn.execute(dialect.begin_write())
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()


__all__ = ["FleetConnection", "connect", "connection_lock", "transaction"]
