import pandas as pd

from dbbench.backends import Backend
from dbbench.collector import COLUMNS, CycleHistoryCollector
from dbbench.runner import CycleReport


def report(backend, insert_s, read_s, count=10):
    return CycleReport(
        backend=backend,
        inserts=count,
        reads=count,
        insert_s=insert_s,
        read_s=read_s,
        started_at=100.0,
        finished_at=101.0,
    )


def test_empty_history():
    collector = CycleHistoryCollector()
    collector.open()
    df = collector.load_history()
    assert df.empty
    assert list(df.columns) == COLUMNS
    assert collector.summaries().empty
    assert len(collector) == 0


def test_summary_from_aggregates():
    collector = CycleHistoryCollector()
    collector.register_cycle(1, report(Backend.SQLITE, 1.0, 2.0))
    collector.register_cycle(1, report(Backend.MYSQL, 3.0, 1.0))
    collector.register_cycle(2, report(Backend.SQLITE, 3.0, 4.0))

    assert len(collector) == 3
    summary = collector.summaries()
    assert summary.loc["sqlite3", ("total_s", "mean")] == 5.0
    assert summary.loc["sqlite3", ("total_s", "max")] == 7.0
    assert summary.loc["sqlite3", ("insert_s", "max")] == 3.0
    assert summary.loc["mysql", ("read_s", "mean")] == 1.0


def test_memory_stays_bounded_without_history_path():
    collector = CycleHistoryCollector()
    for round_no in range(1, 501):
        for backend in Backend:
            collector.register_cycle(round_no, report(backend, 0.1, 0.2))

    assert len(collector) == 1500
    assert len(collector._aggregates) == 3
    assert not hasattr(collector, "_rows")
    assert collector.load_history().empty


def test_rows_are_appended_after_header(tmp_path):
    path = tmp_path / "out" / "history.csv"
    path.parent.mkdir()
    path.write_text("stale contents from a previous run\n")

    collector = CycleHistoryCollector(path)
    collector.open()
    assert path.read_text().strip() == ",".join(COLUMNS)

    collector.register_cycle(4, report(Backend.POSTGRES, 0.5, 0.25, count=3))
    collector.register_cycle(5, report(Backend.SQLITE, 0.1, 0.1, count=1))

    df = pd.read_csv(path)
    assert df["db_type"].tolist() == ["postgres", "sqlite3"]
    assert df["round"].tolist() == [4, 5]
    assert df["inserts"].tolist() == [3, 1]
    assert len(path.read_text().splitlines()) == 3


def test_open_creates_parent_directory(tmp_path):
    path = tmp_path / "nested" / "dir" / "history.csv"
    CycleHistoryCollector(path).open()
    assert path.is_file()


def test_failed_append_is_logged_and_counted(tmp_path, caplog):
    path = tmp_path / "history.csv"
    collector = CycleHistoryCollector(path)
    collector.open()
    path.unlink()
    path.mkdir()

    collector.register_cycle(1, report(Backend.SQLITE, 0.1, 0.1))

    assert len(collector) == 1
    assert "Failed to append cycle" in caplog.text
