from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

from unittest_parallel.listeners import TestListener
from unittest_parallel.models import Severity

if TYPE_CHECKING:
    from unittest_parallel.models import TestRequest, TestResult
    from unittest_parallel.workers import BaseWorker


MARKS = {
    None: "✓",
    Severity.WARNING: "W",
    Severity.FAILURE: "F",
    Severity.ERROR: "E",
}
DIED_MARK = "X"


class LaneOutputFormatter(TestListener):
    """One column per worker lane and one row per completed test::

        | |✓| | |  40%     12ms  tests.test_models.TestResult::test_failed
    """

    def __init__(self, output: TextIO):
        self.output: TextIO = output
        self.worker_count: int = 0
        self.expected_tests: int = 0
        self.executed_tests: int = 0

    def begin(self, worker_count: int, test_count: int) -> None:
        self.worker_count = worker_count
        self.expected_tests = test_count

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        self.executed_tests += 1
        details = "%3d%%  %5dms  %s" % (
            self._progress(),
            result.elapsed * 1000,
            result,
        )
        self._write_lanes(worker.lane, MARKS[result.severity], details)

    def on_exit(
        self, worker: BaseWorker, exit_code: int, request: TestRequest | None
    ) -> None:
        if request is None:
            return
        details = "%3d%%  died   %s (exit code %d)" % (
            self._progress(),
            request.unit,
            exit_code,
        )
        self._write_lanes(worker.lane, DIED_MARK, details)

    def end(self) -> None:
        self.output.write("-" * (self.worker_count * 2 + 1) + "\n\n\n")
        self.output.flush()

    def _progress(self) -> int:
        if not self.expected_tests:
            return 100
        return int(self.executed_tests / self.expected_tests * 100)

    def _write_lanes(self, lane: int, mark: str, message: str) -> None:
        cells = [mark if i == lane else " " for i in range(self.worker_count)]
        self.output.write("|" + "|".join(cells) + f"| {message}\n")
        self.output.flush()
