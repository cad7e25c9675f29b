"""Tests for fleet.core.database and fleet.core.schema."""

import sqlite3
import threading

import pytest

from fleet.core.database import FleetConnection, connect, connection_lock, transaction
from fleet.core.errors import DatabaseError
from fleet.core.schema import FLEET_TABLES, initialize_schema


class TestConnect:
    def test_memory_connection(self):
        conn = connect()
        try:
            row = conn.execute("SELECT 1 AS one").fetchone()
            assert row["one"] == 1
        finally:
            conn.close()

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "fleet.db"
        conn = connect(path)
        conn.close()
        assert path.exists()

    def test_foreign_keys_enabled(self):
        conn = connect()
        try:
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        finally:
            conn.close()

    def test_unopenable_path_raises_database_error(self, tmp_path):
        missing = tmp_path / "missing.db"
        with pytest.raises(DatabaseError):
            connect(f"file:{missing}?mode=ro")


class TestSchema:
    def test_all_tables_created(self, db_conn):
        names = {
            row["name"]
            for row in db_conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        assert set(FLEET_TABLES.values()) <= names

    def test_idempotent(self, db_conn):
        initialize_schema(db_conn)
        initialize_schema(db_conn)


class TestTransaction:
    def _count(self, conn):
        return conn.execute("SELECT COUNT(*) FROM t").fetchone()[0]

    @pytest.fixture
    def conn(self, tmp_path):
        conn = connect(tmp_path / "tx.db")
        conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        yield conn
        conn.close()

    def test_commits_on_success(self, conn, tmp_path):
        with transaction(conn):
            conn.execute("INSERT INTO t (id) VALUES (1)")

        other = connect(tmp_path / "tx.db")
        try:
            assert self._count(other) == 1
        finally:
            other.close()

    def test_rolls_back_and_reraises(self, conn):
        with pytest.raises(RuntimeError, match="abort"):
            with transaction(conn):
                conn.execute("INSERT INTO t (id) VALUES (1)")
                raise RuntimeError("abort")

        assert self._count(conn) == 0
        assert conn.in_transaction is False

    def test_write_lock_held_for_duration(self, conn, tmp_path):
        other = connect(tmp_path / "tx.db", timeout=0.05)
        try:
            with transaction(conn):
                with pytest.raises(sqlite3.OperationalError):
                    other.execute("BEGIN IMMEDIATE")
        finally:
            other.close()

    def test_holds_connection_lock(self, conn):
        entered = threading.Event()

        def other_thread():
            with connection_lock(conn):
                entered.set()

        thread = threading.Thread(target=other_thread)
        with transaction(conn):
            thread.start()
            assert not entered.wait(timeout=0.1)
        thread.join(timeout=5)

        assert entered.is_set()


class TestConnectionLock:
    def test_each_connection_has_its_own_lock(self):
        first, second = connect(), connect()
        try:
            assert isinstance(first, FleetConnection)
            assert connection_lock(first) is connection_lock(first)
            assert connection_lock(first) is not connection_lock(second)
        finally:
            first.close()
            second.close()

    def test_plain_connection_uses_shared_lock(self):
        plain = sqlite3.connect(":memory:")
        other = sqlite3.connect(":memory:")
        try:
            assert connection_lock(plain) is connection_lock(other)
        finally:
            plain.close()
            other.close()
