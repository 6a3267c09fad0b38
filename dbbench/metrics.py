"""Prometheus metrics for the benchmark cycles.

Four families, all labelled by ``db_type`` and ``query_type``:

    db_ops_duration_seconds_total   (Histogram) whole insert/read phase
    db_ops_duration_seconds         (Histogram) single operation
    db_ops_processed_total          (Counter)   operations completed
    db_query_errors_total           (Counter)   operations failed

Each ``BenchmarkMetrics`` owns its own ``CollectorRegistry`` so tests and
embedded harnesses never share state through the global registry.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

from .errors import ExporterBindError

LOGGER = logging.getLogger("dbbench.metrics")

LABELS = ("db_type", "query_type")


class BenchmarkMetrics:
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.ops_total_duration = Histogram(
            "db_ops_duration_seconds_total",
            "Histogram of the duration of database operations",
            labelnames=LABELS,
            registry=self.registry,
        )
        self.ops_duration = Histogram(
            "db_ops_duration_seconds",
            "Histogram of the duration of single database operations",
            labelnames=LABELS,
            registry=self.registry,
        )
        self.ops_processed = Counter(
            "db_ops_processed_total",
            "Total number of database operations",
            labelnames=LABELS,
            registry=self.registry,
        )
        self.query_errors = Counter(
            "db_query_errors_total",
            "Total number of database query errors",
            labelnames=LABELS,
            registry=self.registry,
        )

    def observe_operation(self, db_type: str, query_type: str, seconds: float) -> None:
        self.ops_duration.labels(db_type, query_type).observe(seconds)
        self.ops_processed.labels(db_type, query_type).inc()

    def observe_phase(self, db_type: str, query_type: str, seconds: float) -> None:
        self.ops_total_duration.labels(db_type, query_type).observe(seconds)

    def record_error(self, db_type: str, query_type: str) -> None:
        self.query_errors.labels(db_type, query_type).inc()

    def processed(self, db_type: str, query_type: str) -> float:
        return self._sample("db_ops_processed_total", db_type, query_type)

    def errors(self, db_type: str, query_type: str) -> float:
        return self._sample("db_query_errors_total", db_type, query_type)

    def operation_count(self, db_type: str, query_type: str) -> float:
        """Number of single-operation duration observations."""
        return self._sample("db_ops_duration_seconds_count", db_type, query_type)

    def phase_count(self, db_type: str, query_type: str) -> float:
        return self._sample("db_ops_duration_seconds_total_count", db_type, query_type)

    def _sample(self, name: str, db_type: str, query_type: str) -> float:
        value = self.registry.get_sample_value(
            name, {"db_type": db_type, "query_type": query_type}
        )
        return value or 0.0


class MetricsExporter:
    """Serves ``/metrics`` for a registry from a background daemon thread."""

    def __init__(
        self,
        registry: CollectorRegistry,
        port: int,
        addr: str = "0.0.0.0",
    ) -> None:
        self._registry = registry
        self._port = port
        self._addr = addr
        self._server = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        if self._server is None:
            return self._port
        return self._server.server_port

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        try:
            self._server, self._thread = start_http_server(
                self._port, addr=self._addr, registry=self._registry
            )
        except OSError as exc:
            raise ExporterBindError(
                f"failed to serve metrics on {self._addr}:{self._port}: {exc}"
            ) from exc
        LOGGER.info("Serving metrics on http://%s:%d/metrics", self._addr, self.port)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread:
            self._thread.join(timeout=5.0)
        self._server = None
        self._thread = None
        LOGGER.info("Metrics endpoint stopped")


__all__ = ["BenchmarkMetrics", "MetricsExporter"]
