from __future__ import annotations

import re
import sys
from typing import TYPE_CHECKING, TextIO

from unittest_parallel.listeners import TestListener

if TYPE_CHECKING:
    from unittest_parallel.models import TestRequest, TestResult
    from unittest_parallel.workers import BaseWorker


_NEWLINES = re.compile(r"\r\n|\r|\n")


class TapOutputFormatter(TestListener):
    """Test Anything Protocol, version 13.

    Tests are numbered in completion order. Error messages are written as
    YAML-ish diagnostic blocks to ``diagnostics`` (stderr by default) so that
    the plan on ``output`` stays machine readable.
    """

    def __init__(self, output: TextIO, diagnostics: TextIO | None = None):
        self.output: TextIO = output
        self.diagnostics: TextIO = diagnostics if diagnostics is not None else sys.stderr
        self.count: int = 0

    def begin(self, test_count: int) -> None:
        self.output.write("TAP version 13\n")
        self.output.write(f"1..{test_count}\n")

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        self.count += 1
        ok = "not ok" if result.failed else "ok"
        self.output.write(f"{ok} {self.count} - {result}\n")
        self.output.flush()
        if result.errors:
            self._write_diagnostics(error.message for error in result.errors)

    def on_exit(
        self, worker: BaseWorker, exit_code: int, request: TestRequest | None
    ) -> None:
        if request is None:
            return
        self.count += 1
        self.output.write(f"not ok {self.count} - {request.unit}\n")
        self.output.flush()
        self._write_diagnostics([f"{worker.name} died with exit code {exit_code}"])

    def _write_diagnostics(self, messages) -> None:
        self.diagnostics.write("  ---\n")
        for message in messages:
            self.diagnostics.write("  " + _NEWLINES.sub("\n  ", message.rstrip()) + "\n")
        self.diagnostics.write("  ...\n")
        self.diagnostics.flush()
