from __future__ import annotations


class BenchmarkError(Exception):
    """Base class for every condition that aborts a benchmark cycle."""


class PayloadGenerationError(BenchmarkError):
    """Raised when the entropy source cannot produce an insert payload."""


class UnsupportedBackendError(BenchmarkError):
    """Raised for a backend identity outside the supported set."""


class BackendConnectionError(BenchmarkError):
    def __init__(self, backend: str, message: str) -> None:
        super().__init__(f"[{backend}] {message}")
        self.backend = backend


class SchemaInitializationError(BackendConnectionError):
    pass


class CleanupError(BackendConnectionError):
    pass


class QueryError(BenchmarkError):
    """A single insert or read failed; the error counter was already bumped."""

    def __init__(self, backend: str, query_type: str, message: str) -> None:
        super().__init__(f"[{backend}] error performing {query_type}: {message}")
        self.backend = backend
        self.query_type = query_type


class ExporterBindError(BenchmarkError):
    """Raised when the metrics endpoint cannot listen on its address."""


__all__ = [
    "BenchmarkError",
    "PayloadGenerationError",
    "UnsupportedBackendError",
    "BackendConnectionError",
    "SchemaInitializationError",
    "CleanupError",
    "QueryError",
    "ExporterBindError",
]
