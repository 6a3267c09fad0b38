from __future__ import annotations

import sqlite3

import pytest
from prometheus_client import CollectorRegistry

from dbbench.backends import TABLE_NAME, Backend, open_connection
from dbbench.config import ConnectionSettings
from dbbench.metrics import BenchmarkMetrics


class RecordingCursor:
    def __init__(self, owner: "RecordingConnection", cursor) -> None:
        self._owner = owner
        self._cursor = cursor

    def execute(self, query, params=()):
        self._owner.statements.append(query)
        if self._owner.fail_when is not None and self._owner.fail_when(query, self._owner.statements):
            raise sqlite3.OperationalError("injected failure")
        return self._cursor.execute(query, params)

    def fetchall(self):
        return self._cursor.fetchall()

    def close(self) -> None:
        self._cursor.close()


class RecordingConnection:
    """Wraps a sqlite connection, recording statements and optionally failing some."""

    def __init__(self, conn, fail_when=None) -> None:
        self._conn = conn
        self.fail_when = fail_when
        self.statements: list[str] = []
        self.closed = False

    def cursor(self) -> RecordingCursor:
        return RecordingCursor(self, self._conn.cursor())

    def close(self) -> None:
        self.closed = True
        self._conn.close()

    def count(self, prefix: str) -> int:
        return sum(1 for statement in self.statements if statement.startswith(prefix))


@pytest.fixture
def metrics() -> BenchmarkMetrics:
    return BenchmarkMetrics(CollectorRegistry())


@pytest.fixture
def settings(tmp_path) -> ConnectionSettings:
    return ConnectionSettings(sqlite_path=f"file:{tmp_path / 'bench.db'}?cache=shared")


@pytest.fixture
def sqlite_conn(settings):
    conn = open_connection(Backend.SQLITE, settings)
    yield conn
    conn.close()


@pytest.fixture
def recording_connector():
    """Factory for connectors that hand out ``RecordingConnection`` objects."""
    created: list[RecordingConnection] = []

    def factory(fail_when=None):
        def connector(backend, settings):
            conn = RecordingConnection(open_connection(Backend.SQLITE, settings), fail_when)
            created.append(conn)
            return conn

        connector.created = created
        return connector

    return factory


def table_exists(conn) -> bool:
    cursor = conn.cursor()
    try:
        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (TABLE_NAME,)
        )
        return bool(cursor.fetchall())
    finally:
        cursor.close()


def row_count(conn) -> int:
    cursor = conn.cursor()
    try:
        cursor.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}")
        return cursor.fetchall()[0][0]
    finally:
        cursor.close()


@pytest.fixture(name="table_exists")
def table_exists_fixture():
    return table_exists


@pytest.fixture(name="row_count")
def row_count_fixture():
    return row_count
