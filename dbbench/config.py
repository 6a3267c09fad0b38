from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Sequence

from .backends import Backend
from .payload import DEFAULT_PAYLOAD_LENGTH

DEFAULT_SQLITE_PATH = "file:test.db?cache=shared"
DEFAULT_MYSQL_HOST = "localhost"
DEFAULT_MYSQL_PORT = 3306
DEFAULT_MYSQL_USER = "user"
DEFAULT_MYSQL_PASSWORD = "password"
DEFAULT_MYSQL_DATABASE = "test"
DEFAULT_POSTGRES_DSN = "host=localhost user=user password=password dbname=test sslmode=disable"

DEFAULT_METRICS_ADDR = "0.0.0.0"
DEFAULT_METRICS_PORT = 8080

DEFAULT_MAX_CYCLE_SIZE = 10_000
DEFAULT_JITTER_UPPER_US = 10


class FailurePolicy(str, enum.Enum):
    """What the main loop does when a cycle raises."""

    FAIL_FAST = "fail-fast"
    CONTINUE = "continue"


class ExporterPolicy(str, enum.Enum):
    """Whether a metrics endpoint bind failure stops the harness."""

    FATAL = "fatal"
    DETACHED = "detached"


@dataclass(frozen=True)
class ConnectionSettings:
    """Connection targets for the three backends."""

    sqlite_path: str = DEFAULT_SQLITE_PATH
    mysql_host: str = DEFAULT_MYSQL_HOST
    mysql_port: int = DEFAULT_MYSQL_PORT
    mysql_user: str = DEFAULT_MYSQL_USER
    mysql_password: str = DEFAULT_MYSQL_PASSWORD
    mysql_database: str = DEFAULT_MYSQL_DATABASE
    postgres_dsn: str = DEFAULT_POSTGRES_DSN

    def describe(self, backend: Backend) -> str:
        """Human readable target, with the password left out."""
        if backend is Backend.SQLITE:
            return self.sqlite_path
        if backend is Backend.MYSQL:
            return f"{self.mysql_user}@{self.mysql_host}:{self.mysql_port}/{self.mysql_database}"
        if backend is Backend.POSTGRES:
            return " ".join(
                part for part in self.postgres_dsn.split() if not part.startswith("password=")
            )
        raise ValueError(f"Unknown backend: {backend}")


@dataclass(frozen=True)
class HarnessConfig:
    """Sizing, pacing and failure handling for the benchmark rounds."""

    backends: Sequence[Backend] = field(default_factory=lambda: tuple(Backend))
    max_cycle_size: int = DEFAULT_MAX_CYCLE_SIZE
    payload_length: int = DEFAULT_PAYLOAD_LENGTH
    jitter_upper_us: int = DEFAULT_JITTER_UPPER_US
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST
    independent_sizes: bool = False
    max_rounds: int | None = None
    exporter_policy: ExporterPolicy = ExporterPolicy.FATAL

    def __post_init__(self) -> None:
        if self.max_cycle_size <= 0:
            raise ValueError("max_cycle_size must be > 0")
        if self.payload_length < 0 or self.payload_length % 2:
            raise ValueError("payload_length must be a non-negative even number")
        if self.jitter_upper_us <= 0:
            raise ValueError("jitter_upper_us must be > 0")
        if not self.backends:
            raise ValueError("at least one backend must be configured")


__all__ = [
    "ConnectionSettings",
    "ExporterPolicy",
    "FailurePolicy",
    "HarnessConfig",
]
