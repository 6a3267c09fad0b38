import socket

import pytest
from prometheus_client import CollectorRegistry, generate_latest

from dbbench.errors import ExporterBindError
from dbbench.metrics import BenchmarkMetrics, MetricsExporter


def test_registries_are_isolated():
    first = BenchmarkMetrics(CollectorRegistry())
    second = BenchmarkMetrics(CollectorRegistry())
    first.observe_operation("sqlite3", "insert", 0.01)
    assert first.processed("sqlite3", "insert") == 1
    assert second.processed("sqlite3", "insert") == 0


def test_default_constructs_private_registry():
    assert BenchmarkMetrics().registry is not BenchmarkMetrics().registry


def test_operation_and_phase_observations(metrics):
    metrics.observe_operation("mysql", "read", 0.002)
    metrics.observe_operation("mysql", "read", 0.004)
    metrics.observe_phase("mysql", "read", 0.006)
    metrics.record_error("mysql", "insert")

    assert metrics.processed("mysql", "read") == 2
    assert metrics.operation_count("mysql", "read") == 2
    assert metrics.phase_count("mysql", "read") == 1
    assert metrics.errors("mysql", "insert") == 1
    assert metrics.errors("mysql", "read") == 0


def test_exposition_names_and_labels(metrics):
    metrics.observe_operation("postgres", "insert", 0.1)
    metrics.observe_phase("postgres", "insert", 0.1)
    metrics.record_error("postgres", "read")
    text = generate_latest(metrics.registry).decode("utf-8")

    assert "# TYPE db_ops_duration_seconds_total histogram" in text
    assert "# TYPE db_ops_duration_seconds histogram" in text
    assert "# TYPE db_ops_processed_total counter" in text
    assert "# TYPE db_query_errors_total counter" in text
    assert 'db_ops_processed_total{db_type="postgres",query_type="insert"} 1.0' in text
    assert 'db_query_errors_total{db_type="postgres",query_type="read"} 1.0' in text


def test_exporter_reports_bind_failure(metrics):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    port = blocker.getsockname()[1]
    try:
        exporter = MetricsExporter(metrics.registry, port=port, addr="127.0.0.1")
        with pytest.raises(ExporterBindError):
            exporter.start()
        assert not exporter.running
    finally:
        blocker.close()


def test_exporter_start_and_stop(metrics):
    exporter = MetricsExporter(metrics.registry, port=0, addr="127.0.0.1")
    exporter.start()
    try:
        assert exporter.running
        assert exporter.port > 0
    finally:
        exporter.stop()
    assert not exporter.running
    exporter.stop()
