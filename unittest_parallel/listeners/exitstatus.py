from __future__ import annotations

from typing import TYPE_CHECKING

from unittest_parallel.listeners import TestListener

if TYPE_CHECKING:
    from unittest_parallel.models import TestRequest, TestResult
    from unittest_parallel.workers import BaseWorker


class ExitStatusListener(TestListener):
    """Compute the exit status of the run.

    The status is ``1`` if any test reported an ``error`` or ``failure``
    (warnings do not count), if a worker died while running a test, or if
    the run ended because every worker was lost; ``0`` otherwise.
    """

    def __init__(self) -> None:
        self.failed: bool = False
        self.finished: bool = False
        self.abandoned: list[TestRequest] = []

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        if result.failed:
            self.failed = True

    def on_exit(
        self, worker: BaseWorker, exit_code: int, request: TestRequest | None
    ) -> None:
        if request is not None:
            self.abandoned.append(request)
            self.failed = True

    def end(self, reason: str) -> None:
        self.finished = True
        if reason == "workers_lost":
            self.failed = True

    @property
    def exit_status(self) -> int:
        return 1 if self.failed else 0
