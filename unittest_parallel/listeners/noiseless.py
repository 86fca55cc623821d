from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

from unittest_parallel.listeners import TestListener

if TYPE_CHECKING:
    from unittest_parallel.models import TestRequest, TestResult
    from unittest_parallel.workers import BaseWorker


class NoiselessOutputFormatter(TestListener):
    """Only report what went wrong: failing tests with their messages, and
    tests abandoned by a dying worker. A clean run prints a single summary
    line."""

    def __init__(self, output: TextIO):
        self.output: TextIO = output
        self.failures: int = 0

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        if not result.failed:
            return
        self.failures += 1
        self.output.write(f"{self.failures}) {result}\n")
        for error in result.errors:
            if error.severity.is_failing:
                self.output.write(f"{error.message.rstrip()}\n")
        self.output.write("\n")
        self.output.flush()

    def on_exit(
        self, worker: BaseWorker, exit_code: int, request: TestRequest | None
    ) -> None:
        if request is None:
            return
        self.failures += 1
        self.output.write(
            f"{self.failures}) {request.unit}\n"
            f"{worker.name} died with exit code {exit_code}\n\n"
        )
        self.output.flush()

    def end(self, executed: int, expected: int) -> None:
        self.output.write(
            f"{executed}/{expected} tests executed, {self.failures} failed\n"
        )
        self.output.flush()
