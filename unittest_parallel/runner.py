"""
Worker mode.

A worker reads one request per line on its standard input, runs the named
test with :mod:`unittest` and writes the result as one line on file
descriptor 3. Anything the test prints goes to the real stdout/stderr and is
passed through by the coordinator. Reading stops at the terminate line or at
end of input.
"""

from __future__ import annotations

import logging
import os
import sys
import time
import traceback
import unittest
import warnings
from typing import TYPE_CHECKING, BinaryIO

from unittest_parallel.ipc.process import RESULT_FD
from unittest_parallel.models import ErrorEntry, Severity, TestResult
from unittest_parallel.protocol import decode_request, encode_result, is_terminate
from unittest_parallel.utils.memory import get_peak_memory

if TYPE_CHECKING:
    from collections.abc import Iterable

    from unittest_parallel.models import TestRequest


logger = logging.getLogger(__name__)


class CollectingResult(unittest.TestResult):
    """A :class:`unittest.TestResult` that turns every outcome into an
    :class:`~unittest_parallel.models.ErrorEntry`."""

    def __init__(self) -> None:
        super().__init__()
        self.entries: list[ErrorEntry] = []

    def addError(self, test, err) -> None:
        super().addError(test, err)
        self.entries.append(ErrorEntry(Severity.ERROR, self._exc_info_to_string(err, test)))

    def addFailure(self, test, err) -> None:
        super().addFailure(test, err)
        self.entries.append(
            ErrorEntry(Severity.FAILURE, self._exc_info_to_string(err, test))
        )

    def addSubTest(self, test, subtest, err) -> None:
        super().addSubTest(test, subtest, err)
        if err is None:
            return
        severity = (
            Severity.FAILURE if issubclass(err[0], test.failureException) else Severity.ERROR
        )
        self.entries.append(ErrorEntry(severity, self._exc_info_to_string(err, test)))

    def addSkip(self, test, reason) -> None:
        super().addSkip(test, reason)
        self.entries.append(ErrorEntry(Severity.WARNING, f"Skipped: {reason}"))

    def addUnexpectedSuccess(self, test) -> None:
        super().addUnexpectedSuccess(test)
        self.entries.append(ErrorEntry(Severity.FAILURE, "Unexpected success"))


def run_test(request: TestRequest, memory_tracking: bool = True) -> TestResult:
    """Load and run the test named by ``request`` in this process."""
    result = CollectingResult()
    start = time.perf_counter()
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            suite = unittest.defaultTestLoader.loadTestsFromName(request.unit.test_name)
        except Exception:
            result.entries.append(ErrorEntry(Severity.ERROR, traceback.format_exc()))
        else:
            suite.run(result)
    elapsed = time.perf_counter() - start
    entries = list(result.entries)
    for warning in caught:
        message = warnings.formatwarning(
            warning.message, warning.category, warning.filename, warning.lineno
        )
        entries.append(ErrorEntry(Severity.WARNING, message.rstrip()))
    return TestResult(
        id=request.id,
        class_name=request.class_name,
        name=request.name,
        elapsed=elapsed,
        errors=tuple(entries),
        memory=get_peak_memory() if memory_tracking else None,
    )


def serve(
    requests: Iterable[bytes], results: BinaryIO, memory_tracking: bool = True
) -> int:
    """Answer every request line from ``requests`` on ``results`` until the
    terminate line. Returns the number of tests run."""
    count = 0
    for line in requests:
        if is_terminate(line):
            break
        request = decode_request(line)
        if request is None:
            continue
        result = run_test(request, memory_tracking)
        results.write(encode_result(result))
        results.flush()
        count += 1
    return count


def run_worker(memory_tracking: bool = True) -> int:
    """Serve requests from stdin, writing results to :data:`RESULT_FD`."""
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    with os.fdopen(RESULT_FD, "wb", buffering=0) as results:
        count = serve(sys.stdin.buffer, results, memory_tracking)
    logger.debug("Worker done after %(count)d tests", {"count": count})
    return 0
