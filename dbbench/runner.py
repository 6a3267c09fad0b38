from __future__ import annotations

import contextlib
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .backends import Backend, Dialect, dialect_for, open_connection
from .config import DEFAULT_JITTER_UPPER_US, ConnectionSettings
from .errors import (
    BackendConnectionError,
    CleanupError,
    QueryError,
    SchemaInitializationError,
)
from .metrics import BenchmarkMetrics
from .payload import DEFAULT_PAYLOAD_LENGTH, generate_random_string

LOGGER = logging.getLogger("dbbench.runner")

Connector = Callable[[Backend, ConnectionSettings], Any]


@dataclass
class CycleReport:
    backend: Backend
    inserts: int
    reads: int
    insert_s: float
    read_s: float
    started_at: float
    finished_at: float = field(default_factory=time.time)

    @property
    def total_s(self) -> float:
        return self.insert_s + self.read_s


class BenchmarkCycleRunner:
    """Runs connect, init, inserts, reads and cleanup for one backend.

    Every step raises on failure; nothing is retried. The connection is
    closed whichever way ``run`` exits.
    """

    def __init__(
        self,
        metrics: BenchmarkMetrics,
        settings: ConnectionSettings | None = None,
        payload_length: int = DEFAULT_PAYLOAD_LENGTH,
        jitter_upper_us: int = DEFAULT_JITTER_UPPER_US,
        rng: random.Random | None = None,
        connector: Connector = open_connection,
    ) -> None:
        self._metrics = metrics
        self._settings = settings or ConnectionSettings()
        self._payload_length = payload_length
        self._jitter_upper_us = jitter_upper_us
        self._rng = rng or random.Random()
        self._connector = connector

    def run(self, backend: Backend, num_inserts: int, num_reads: int) -> CycleReport:
        started_at = time.time()
        conn = self.connect(backend)
        with contextlib.closing(conn):
            LOGGER.info("[%s] Initializing database...", backend.value)
            self.initialize(conn, backend)

            LOGGER.info("[%s] Performing inserts...", backend.value)
            insert_s = self.perform_inserts(conn, backend, num_inserts)

            LOGGER.info("[%s] Performing reads...", backend.value)
            read_s = self.perform_reads(conn, backend, num_reads)

            self.cleanup(conn, backend)

        report = CycleReport(
            backend=backend,
            inserts=num_inserts,
            reads=num_reads,
            insert_s=insert_s,
            read_s=read_s,
            started_at=started_at,
        )
        LOGGER.info("[%s] Total time: %.4fs", backend.value, report.total_s)
        LOGGER.info("[%s] Inserts time: %.4fs", backend.value, report.insert_s)
        LOGGER.info("[%s] Reads time: %.4fs", backend.value, report.read_s)
        return report

    def connect(self, backend: Backend) -> Any:
        LOGGER.info("[%s] Connecting to database...", backend.value)
        try:
            return self._connector(backend, self._settings)
        except Exception as exc:  # noqa: BLE001
            raise BackendConnectionError(
                backend.value, f"error connecting to database: {exc}"
            ) from exc

    def initialize(self, conn: Any, backend: Backend) -> None:
        dialect = dialect_for(backend)
        try:
            self._execute(conn, dialect.create_table)
        except Exception as exc:  # noqa: BLE001
            raise SchemaInitializationError(
                backend.value, f"error initializing database: {exc}"
            ) from exc
        LOGGER.info("[%s] Database initialized successfully.", backend.value)

    def perform_inserts(self, conn: Any, backend: Backend, num_inserts: int) -> float:
        dialect = dialect_for(backend)
        payload = generate_random_string(self._payload_length)

        LOGGER.info("[%s] Starting %d inserts...", backend.value, num_inserts)
        start = time.perf_counter()
        for _ in range(num_inserts):
            op_start = time.perf_counter()
            time.sleep(self._rng.randrange(self._jitter_upper_us) / 1_000_000)
            try:
                self._execute(conn, dialect.insert, (payload,))
            except Exception as exc:  # noqa: BLE001
                self._metrics.record_error(backend.value, "insert")
                raise QueryError(backend.value, "insert", str(exc)) from exc
            self._metrics.observe_operation(
                backend.value, "insert", time.perf_counter() - op_start
            )
        duration = time.perf_counter() - start
        self._metrics.observe_phase(backend.value, "insert", duration)
        LOGGER.info("[%s] Finished inserts in %.4f seconds", backend.value, duration)
        return duration

    def perform_reads(self, conn: Any, backend: Backend, num_reads: int) -> float:
        dialect = dialect_for(backend)

        LOGGER.info("[%s] Starting %d reads...", backend.value, num_reads)
        start = time.perf_counter()
        for _ in range(num_reads):
            op_start = time.perf_counter()
            try:
                self._drain(conn, dialect)
            except Exception as exc:  # noqa: BLE001
                self._metrics.record_error(backend.value, "read")
                raise QueryError(backend.value, "read", str(exc)) from exc
            self._metrics.observe_operation(
                backend.value, "read", time.perf_counter() - op_start
            )
        duration = time.perf_counter() - start
        self._metrics.observe_phase(backend.value, "read", duration)
        LOGGER.info("[%s] Finished reads in %.4f seconds", backend.value, duration)
        return duration

    def cleanup(self, conn: Any, backend: Backend) -> None:
        dialect = dialect_for(backend)
        LOGGER.info("[%s] Cleaning up database...", backend.value)
        try:
            self._execute(conn, dialect.drop_table)
        except Exception as exc:  # noqa: BLE001
            raise CleanupError(
                backend.value, f"error cleaning up database: {exc}"
            ) from exc
        LOGGER.info("[%s] Database cleaned up successfully.", backend.value)

    @staticmethod
    def _execute(conn: Any, query: str, params: tuple = ()) -> None:
        cursor = conn.cursor()
        try:
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)
        finally:
            cursor.close()

    @staticmethod
    def _drain(conn: Any, dialect: Dialect) -> None:
        cursor = conn.cursor()
        try:
            cursor.execute(dialect.select_random)
            cursor.fetchall()
        finally:
            cursor.close()


__all__ = ["BenchmarkCycleRunner", "CycleReport"]
