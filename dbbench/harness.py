from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass
from typing import Callable

from .backends import Backend
from .config import FailurePolicy, HarnessConfig
from .errors import BenchmarkError, PayloadGenerationError
from .runner import BenchmarkCycleRunner, CycleReport

LOGGER = logging.getLogger("dbbench.harness")

CycleCallback = Callable[[int, CycleReport], None]


@dataclass
class HarnessStatistics:
    rounds: int = 0
    cycles: int = 0
    failed_cycles: int = 0


class BenchmarkHarness:
    """Drives rounds of benchmark cycles, one cycle per configured backend.

    A round draws one size ``r`` in ``[0, max_cycle_size)`` that every backend
    uses as insert and read count, then waits ``r`` milliseconds. With
    ``independent_sizes`` each backend and the wait get their own draw.
    """

    def __init__(
        self,
        runner: BenchmarkCycleRunner,
        config: HarnessConfig,
        rng: random.Random | None = None,
        cycle_callback: CycleCallback | None = None,
    ) -> None:
        self._runner = runner
        self._config = config
        self._rng = rng or random.Random()
        self._cycle_callback = cycle_callback
        self._stop_event = threading.Event()
        self.stats = HarnessStatistics()

    def run(self, stop_event: threading.Event | None = None) -> HarnessStatistics:
        if stop_event is not None:
            self._stop_event = stop_event
        stop_event = self._stop_event
        max_rounds = self._config.max_rounds

        while not stop_event.is_set():
            round_no = self.stats.rounds + 1
            size = self._draw_size()
            for backend in self._config.backends:
                if stop_event.is_set():
                    break
                cycle_size = self._draw_size() if self._config.independent_sizes else size
                self._run_cycle(round_no, backend, cycle_size)
            self.stats.rounds = round_no

            if max_rounds is not None and round_no >= max_rounds:
                break
            LOGGER.info(">>> Waiting %d ms for the next cycle...", size)
            if stop_event.wait(size / 1000.0):
                break

        LOGGER.info(
            "Stopped after %d round(s), %d cycle(s), %d failed",
            self.stats.rounds,
            self.stats.cycles,
            self.stats.failed_cycles,
        )
        return self.stats

    def stop(self) -> None:
        self._stop_event.set()

    def _run_cycle(self, round_no: int, backend: Backend, size: int) -> None:
        LOGGER.info(">>> Starting benchmark for %s...", backend.display_name)
        try:
            report = self._runner.run(backend, size, size)
        except PayloadGenerationError:
            raise
        except BenchmarkError:
            self.stats.failed_cycles += 1
            if self._config.failure_policy is FailurePolicy.FAIL_FAST:
                raise
            LOGGER.exception("[%s] Cycle failed; continuing with next backend", backend.value)
            return
        self.stats.cycles += 1
        if self._cycle_callback is not None:
            self._cycle_callback(round_no, report)

    def _draw_size(self) -> int:
        return self._rng.randrange(self._config.max_cycle_size)


__all__ = ["BenchmarkHarness", "HarnessStatistics"]
