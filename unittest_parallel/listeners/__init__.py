"""
Listeners receive the run lifecycle signals.

A listener is any object with some of the methods below; the distributor
connects each one it finds to the matching signal when the listener is added.
Handlers are called with the keyword arguments they declare, so a handler may
accept fewer arguments than the signal carries.

=================  ===============  ======================================
method             signal           arguments
=================  ===============  ======================================
``begin``          run_started      ``worker_count``, ``test_count``
``test_started``   test_started     ``worker``, ``request``
``test_completed`` test_completed   ``worker``, ``result``
``end``            run_finished     ``executed``, ``expected``, ``reason``
``on_stdout``      worker_stdout    ``worker``, ``data``
``on_stderr``      worker_stderr    ``worker``, ``data``
``on_exit``        worker_exited    ``worker``, ``exit_code``, ``request``
=================  ===============  ======================================
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from unittest_parallel import signals

if TYPE_CHECKING:
    from unittest_parallel.models import TestRequest, TestResult
    from unittest_parallel.workers import BaseWorker


LISTENER_METHODS = {
    signals.run_started: "begin",
    signals.test_started: "test_started",
    signals.test_completed: "test_completed",
    signals.run_finished: "end",
    signals.worker_stdout: "on_stdout",
    signals.worker_stderr: "on_stderr",
    signals.worker_exited: "on_exit",
}


class TestListener:
    """Base class for listeners, every handler does nothing."""

    __test__ = False

    def begin(self, worker_count: int, test_count: int) -> None:
        pass

    def test_started(self, worker: BaseWorker, request: TestRequest) -> None:
        pass

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        pass

    def end(self, executed: int, expected: int, reason: str) -> None:
        pass

    def on_stdout(self, worker: BaseWorker, data: bytes) -> None:
        pass

    def on_stderr(self, worker: BaseWorker, data: bytes) -> None:
        pass

    def on_exit(
        self, worker: BaseWorker, exit_code: int, request: TestRequest | None
    ) -> None:
        pass
