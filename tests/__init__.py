"""
tests: this package contains all unittest-parallel unittests

Run them with ``pytest``. ``tests/sample_suite.py`` is not a test module of
its own: it is the suite the worker processes run in the integration tests.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from twisted.internet.defer import Deferred
from twisted.internet.protocol import ProcessProtocol

from unittest_parallel.models import ErrorEntry, Severity, TestResult, TestUnit
from unittest_parallel.utils.project import ENVVAR

if TYPE_CHECKING:
    from collections.abc import Iterable

    from twisted.python.failure import Failure


PROJECT_DIR = str(Path(__file__).parent.parent.resolve())

SAMPLE_SUITE = "tests.sample_suite"


def make_units(count: int, class_name: str = "tests.sample_suite.Passing") -> list[TestUnit]:
    return [TestUnit(i, class_name, f"test_{i}") for i in range(count)]


def make_result(unit: TestUnit, *severities: Severity, elapsed: float = 0.01) -> TestResult:
    errors = tuple(ErrorEntry(s, f"{s.label} in {unit.name}") for s in severities)
    return TestResult(unit.id, unit.class_name, unit.name, elapsed, errors)


class _OutputCollector(ProcessProtocol):
    def __init__(self) -> None:
        self.deferred: Deferred[tuple[int, bytes, bytes]] = Deferred()
        self.out: bytes = b""
        self.err: bytes = b""

    def outReceived(self, data: bytes) -> None:
        self.out += data

    def errReceived(self, data: bytes) -> None:
        self.err += data

    def processEnded(self, reason: Failure) -> None:
        self.deferred.callback((reason.value.exitCode, self.out, self.err))


def run_cmdline(
    args: Iterable[str], settings: str | None = None
) -> Deferred[tuple[int, bytes, bytes]]:
    """Run ``unittest-parallel`` in a subprocess from the project directory
    (trial chdirs to a temporary one). Fires with ``(exit code, stdout,
    stderr)``."""
    from twisted.internet import reactor

    env = os.environ.copy()
    env.pop(ENVVAR, None)
    if settings is not None:
        env[ENVVAR] = settings
    cmd = [sys.executable, "-m", "unittest_parallel.cmdline", *args]
    collector = _OutputCollector()
    reactor.spawnProcess(collector, cmd[0], cmd, env=env, path=PROJECT_DIR)
    return collector.deferred
