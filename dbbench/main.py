from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path

from .backends import parse_backends
from .collector import CycleHistoryCollector
from .config import (
    DEFAULT_JITTER_UPPER_US,
    DEFAULT_MAX_CYCLE_SIZE,
    DEFAULT_METRICS_ADDR,
    DEFAULT_METRICS_PORT,
    DEFAULT_MYSQL_DATABASE,
    DEFAULT_MYSQL_HOST,
    DEFAULT_MYSQL_PASSWORD,
    DEFAULT_MYSQL_PORT,
    DEFAULT_MYSQL_USER,
    DEFAULT_POSTGRES_DSN,
    DEFAULT_SQLITE_PATH,
    ConnectionSettings,
    ExporterPolicy,
    FailurePolicy,
    HarnessConfig,
)
from .errors import BenchmarkError, ExporterBindError
from .harness import BenchmarkHarness
from .metrics import BenchmarkMetrics, MetricsExporter
from .payload import DEFAULT_PAYLOAD_LENGTH
from .runner import BenchmarkCycleRunner

LOGGER = logging.getLogger("dbbench")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    env = os.environ
    parser = argparse.ArgumentParser(description="Database load benchmark harness")
    parser.add_argument(
        "--backends",
        default=env.get("DBBENCH_BACKENDS", "sqlite3,mysql,postgres"),
        help="Comma-separated backends to exercise (sqlite3, mysql, postgres)",
    )
    parser.add_argument(
        "--sqlite-path", default=env.get("DBBENCH_SQLITE_PATH", DEFAULT_SQLITE_PATH)
    )
    parser.add_argument("--mysql-host", default=env.get("DBBENCH_MYSQL_HOST", DEFAULT_MYSQL_HOST))
    parser.add_argument(
        "--mysql-port",
        type=int,
        default=env.get("DBBENCH_MYSQL_PORT", str(DEFAULT_MYSQL_PORT)),
    )
    parser.add_argument("--mysql-user", default=env.get("DBBENCH_MYSQL_USER", DEFAULT_MYSQL_USER))
    parser.add_argument(
        "--mysql-password",
        default=env.get("DBBENCH_MYSQL_PASSWORD", DEFAULT_MYSQL_PASSWORD),
    )
    parser.add_argument(
        "--mysql-database",
        default=env.get("DBBENCH_MYSQL_DATABASE", DEFAULT_MYSQL_DATABASE),
    )
    parser.add_argument(
        "--postgres-dsn",
        default=env.get("DBBENCH_POSTGRES_DSN", DEFAULT_POSTGRES_DSN),
        help="libpq connection string for the postgres backend",
    )
    parser.add_argument(
        "--metrics-addr", default=env.get("DBBENCH_METRICS_ADDR", DEFAULT_METRICS_ADDR)
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=env.get("DBBENCH_METRICS_PORT", str(DEFAULT_METRICS_PORT)),
    )
    parser.add_argument(
        "--max-cycle-size",
        type=int,
        default=env.get("DBBENCH_MAX_CYCLE_SIZE", str(DEFAULT_MAX_CYCLE_SIZE)),
        help="Exclusive upper bound of the per-round insert/read count",
    )
    parser.add_argument(
        "--payload-length",
        type=int,
        default=env.get("DBBENCH_PAYLOAD_LENGTH", str(DEFAULT_PAYLOAD_LENGTH)),
        help="Hex characters per inserted row (must be even)",
    )
    parser.add_argument(
        "--jitter-us",
        type=int,
        default=env.get("DBBENCH_JITTER_US", str(DEFAULT_JITTER_UPPER_US)),
        help="Exclusive upper bound of the random pre-insert sleep in microseconds",
    )
    parser.add_argument(
        "--rounds",
        type=int,
        default=env.get("DBBENCH_ROUNDS", "0"),
        help="Number of rounds to run (<=0 for infinite)",
    )
    parser.add_argument(
        "--independent-sizes",
        action="store_true",
        default=env.get("DBBENCH_INDEPENDENT_SIZES", "").lower() in {"1", "true", "yes"},
        help="Draw a separate cycle size for every backend instead of one per round",
    )
    parser.add_argument(
        "--failure-policy",
        choices=[policy.value for policy in FailurePolicy],
        default=env.get("DBBENCH_FAILURE_POLICY", FailurePolicy.FAIL_FAST.value),
    )
    parser.add_argument(
        "--exporter-policy",
        choices=[policy.value for policy in ExporterPolicy],
        default=env.get("DBBENCH_EXPORTER_POLICY", ExporterPolicy.FATAL.value),
    )
    parser.add_argument(
        "--history-path",
        default=env.get("DBBENCH_HISTORY_PATH"),
        help="Optional CSV file receiving one row per completed cycle",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the planned benchmark without executing it",
    )
    parser.add_argument(
        "--log-level",
        default=env.get("DBBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_settings(args: argparse.Namespace) -> ConnectionSettings:
    return ConnectionSettings(
        sqlite_path=args.sqlite_path,
        mysql_host=args.mysql_host,
        mysql_port=args.mysql_port,
        mysql_user=args.mysql_user,
        mysql_password=args.mysql_password,
        mysql_database=args.mysql_database,
        postgres_dsn=args.postgres_dsn,
    )


def build_config(args: argparse.Namespace) -> HarnessConfig:
    return HarnessConfig(
        backends=parse_backends(args.backends),
        max_cycle_size=args.max_cycle_size,
        payload_length=args.payload_length,
        jitter_upper_us=args.jitter_us,
        failure_policy=FailurePolicy(args.failure_policy),
        independent_sizes=args.independent_sizes,
        max_rounds=args.rounds if args.rounds > 0 else None,
        exporter_policy=ExporterPolicy(args.exporter_policy),
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        settings = build_settings(args)
        config = build_config(args)
    except (BenchmarkError, ValueError) as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    if args.dry_run:
        _print_plan(settings, config, args)
        return 0

    history = CycleHistoryCollector(Path(args.history_path) if args.history_path else None)
    try:
        history.open()
    except OSError as exc:
        LOGGER.error("Invalid history path %s: %s", args.history_path, exc)
        return 2

    metrics = BenchmarkMetrics()
    exporter = MetricsExporter(metrics.registry, port=args.metrics_port, addr=args.metrics_addr)
    try:
        exporter.start()
    except ExporterBindError:
        if config.exporter_policy is ExporterPolicy.FATAL:
            LOGGER.critical("Metrics endpoint unavailable", exc_info=True)
            return 1
        LOGGER.warning("Metrics endpoint unavailable; benchmarking without it", exc_info=True)

    runner = BenchmarkCycleRunner(
        metrics,
        settings=settings,
        payload_length=config.payload_length,
        jitter_upper_us=config.jitter_upper_us,
    )
    harness = BenchmarkHarness(runner, config, cycle_callback=history.register_cycle)

    stop_event = threading.Event()
    previous_handler = _install_signal_handler(stop_event)

    exit_code = 0
    try:
        harness.run(stop_event)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted, stopping benchmark")
    except BenchmarkError:
        LOGGER.critical("Benchmark aborted", exc_info=True)
        exit_code = 1
    finally:
        exporter.stop()
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)

    if len(history):
        LOGGER.info("Cycle summary:\n%s", history.summaries().to_string())
    return exit_code


def _install_signal_handler(stop_event: threading.Event):
    """Make SIGTERM stop the loop between cycles; returns the replaced handler."""
    if threading.current_thread() is not threading.main_thread():
        return None

    def handle(signum, frame) -> None:
        LOGGER.info("Received %s, stopping after the current cycle", signal.Signals(signum).name)
        stop_event.set()

    return signal.signal(signal.SIGTERM, handle)


def _print_plan(settings: ConnectionSettings, config: HarnessConfig, args: argparse.Namespace) -> None:
    print(f"Metrics: http://{args.metrics_addr}:{args.metrics_port}/metrics ({config.exporter_policy.value})")
    print(
        f"Rounds: {config.max_rounds or 'infinite'}, cycle size in [0, {config.max_cycle_size}), "
        f"{'independent' if config.independent_sizes else 'shared'} per round"
    )
    print(f"Failure policy: {config.failure_policy.value}")
    for backend in config.backends:
        print(f"  - {backend.display_name}: {settings.describe(backend)}")


if __name__ == "__main__":
    sys.exit(main())
