from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from .runner import CycleReport

LOGGER = logging.getLogger("dbbench.collector")

COLUMNS = [
    "round",
    "db_type",
    "inserts",
    "reads",
    "insert_s",
    "read_s",
    "total_s",
    "started_ts",
    "finished_ts",
]
DURATIONS = ("insert_s", "read_s", "total_s")


@dataclass
class _BackendAggregate:
    cycles: int = 0
    insert_s_sum: float = 0.0
    read_s_sum: float = 0.0
    total_s_sum: float = 0.0
    insert_s_max: float = 0.0
    read_s_max: float = 0.0
    total_s_max: float = 0.0

    def add(self, row: dict) -> None:
        self.cycles += 1
        for name in DURATIONS:
            setattr(self, f"{name}_sum", getattr(self, f"{name}_sum") + row[name])
            setattr(self, f"{name}_max", max(getattr(self, f"{name}_max"), row[name]))


class CycleHistoryCollector:
    """Appends one CSV row per completed cycle and keeps per-backend totals.

    Memory stays bounded by the number of backends; rows only go to disk.
    """

    def __init__(self, csv_path: Path | None = None) -> None:
        self._csv_path = csv_path
        self._lock = threading.Lock()
        self._aggregates: dict[str, _BackendAggregate] = {}
        self._cycles = 0

    def open(self) -> None:
        """Create or truncate the CSV file and write its header."""
        if self._csv_path is None:
            return
        self._csv_path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(columns=COLUMNS).to_csv(self._csv_path, index=False)
        LOGGER.info("Writing cycle history to %s", self._csv_path)

    def register_cycle(self, round_no: int, report: CycleReport) -> None:
        row = {
            "round": round_no,
            "db_type": report.backend.value,
            "inserts": report.inserts,
            "reads": report.reads,
            "insert_s": report.insert_s,
            "read_s": report.read_s,
            "total_s": report.total_s,
            "started_ts": report.started_at,
            "finished_ts": report.finished_at,
        }
        with self._lock:
            self._cycles += 1
            self._aggregates.setdefault(row["db_type"], _BackendAggregate()).add(row)
            if self._csv_path is not None:
                self._append(row)

    def __len__(self) -> int:
        with self._lock:
            return self._cycles

    def load_history(self) -> pd.DataFrame:
        if self._csv_path is None or not self._csv_path.is_file():
            return pd.DataFrame(columns=COLUMNS)
        return pd.read_csv(self._csv_path)

    def summaries(self) -> pd.DataFrame:
        """Mean and max durations per backend."""
        columns = pd.MultiIndex.from_product([DURATIONS, ["mean", "max"]])
        with self._lock:
            rows = {
                db_type: [
                    getattr(agg, f"{name}_sum") / agg.cycles if stat == "mean" else getattr(agg, f"{name}_max")
                    for name, stat in columns
                ]
                for db_type, agg in self._aggregates.items()
            }
        if not rows:
            return pd.DataFrame()
        return pd.DataFrame.from_dict(rows, orient="index", columns=columns)

    def _append(self, row: dict) -> None:
        try:
            pd.DataFrame([row], columns=COLUMNS).to_csv(
                self._csv_path, mode="a", header=False, index=False
            )
        except OSError:
            LOGGER.exception("Failed to append cycle to %s", self._csv_path)


__all__ = ["CycleHistoryCollector"]
