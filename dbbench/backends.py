"""Backend identities and the SQL each one speaks.

The three engines differ only syntactically: the primary key column type, the
parameter placeholder of the Python driver, and the random ordering function
used for reads. Every dialect is a static table entry so adding a backend is a
single, local change.
"""

from __future__ import annotations

import enum
import logging
import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable

from .errors import UnsupportedBackendError

if TYPE_CHECKING:
    from .config import ConnectionSettings

LOGGER = logging.getLogger("dbbench.backends")

TABLE_NAME = "test"


class Backend(str, enum.Enum):
    SQLITE = "sqlite3"
    MYSQL = "mysql"
    POSTGRES = "postgres"

    @property
    def display_name(self) -> str:
        return BACKEND_NAMES[self]


BACKEND_NAMES = {
    Backend.SQLITE: "SQLite",
    Backend.MYSQL: "MySQL",
    Backend.POSTGRES: "PostgreSQL",
}


@dataclass(frozen=True)
class Dialect:
    create_table: str
    insert: str
    select_random: str
    drop_table: str = f"DROP TABLE IF EXISTS {TABLE_NAME}"


DIALECTS: dict[Backend, Dialect] = {
    Backend.SQLITE: Dialect(
        create_table=(
            f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} "
            "(id INTEGER PRIMARY KEY AUTOINCREMENT, data TEXT)"
        ),
        insert=f"INSERT INTO {TABLE_NAME} (data) VALUES (?)",
        select_random=f"SELECT * FROM {TABLE_NAME} ORDER BY RANDOM()",
    ),
    Backend.MYSQL: Dialect(
        create_table=(
            f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} "
            "(id INT AUTO_INCREMENT PRIMARY KEY, data VARCHAR(255))"
        ),
        insert=f"INSERT INTO {TABLE_NAME} (data) VALUES (%s)",
        select_random=f"SELECT * FROM {TABLE_NAME} ORDER BY RAND()",
    ),
    Backend.POSTGRES: Dialect(
        create_table=(
            f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} "
            "(id SERIAL PRIMARY KEY, data TEXT)"
        ),
        insert=f"INSERT INTO {TABLE_NAME} (data) VALUES (%s)",
        select_random=f"SELECT * FROM {TABLE_NAME} ORDER BY RANDOM()",
    ),
}


def resolve_backend(value: Backend | str) -> Backend:
    try:
        return Backend(value)
    except ValueError:
        raise UnsupportedBackendError(f"Unsupported database type: {value}") from None


def dialect_for(backend: Backend | str) -> Dialect:
    backend = resolve_backend(backend)
    try:
        return DIALECTS[backend]
    except KeyError:
        raise UnsupportedBackendError(f"No SQL dialect registered for {backend.value}") from None


def parse_backends(value: str | Iterable[str]) -> tuple[Backend, ...]:
    """Parse a comma-separated backend list, keeping the canonical run order."""
    if isinstance(value, str):
        names = [item.strip() for item in value.split(",") if item.strip()]
    else:
        names = list(value)
    selected = {resolve_backend(name) for name in names}
    return tuple(backend for backend in Backend if backend in selected)


def open_connection(backend: Backend, settings: ConnectionSettings) -> Any:
    """Open an autocommit DB-API connection to ``backend``.

    Server drivers are imported lazily so the file engine works without them.
    """
    backend = resolve_backend(backend)
    LOGGER.debug("[%s] Opening connection to %s", backend.value, settings.describe(backend))
    if backend is Backend.SQLITE:
        path = settings.sqlite_path
        return sqlite3.connect(path, uri=path.startswith("file:"), isolation_level=None)
    if backend is Backend.MYSQL:
        import pymysql

        return pymysql.connect(
            host=settings.mysql_host,
            port=settings.mysql_port,
            user=settings.mysql_user,
            password=settings.mysql_password,
            database=settings.mysql_database,
            charset="utf8mb4",
            autocommit=True,
        )
    if backend is Backend.POSTGRES:
        import psycopg2

        conn = psycopg2.connect(settings.postgres_dsn)
        conn.autocommit = True
        return conn
    raise UnsupportedBackendError(f"Unsupported database type: {backend.value}")


__all__ = [
    "Backend",
    "DIALECTS",
    "Dialect",
    "TABLE_NAME",
    "dialect_for",
    "open_connection",
    "parse_backends",
    "resolve_backend",
]
