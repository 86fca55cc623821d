"""
Worker lanes.

A run is driven by one or more workers, all implementing
:class:`~unittest_parallel.interfaces.IWorker`:

  - :class:`~unittest_parallel.workers.process.WorkerProcess` runs tests in
    a live child process.

  - :class:`~unittest_parallel.workers.replay.ReplayWorker` answers from a
    recorded result log without spawning anything.

Both share :class:`BaseWorker`, which owns the lane state machine and the
signals a lane publishes, so the distributor and the listeners cannot tell
them apart.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from zope.interface import implementer

from unittest_parallel import signals
from unittest_parallel.interfaces import IWorker

if TYPE_CHECKING:
    from unittest_parallel.models import TestRequest, TestResult
    from unittest_parallel.signalmanager import SignalManager


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    STARTING = "starting"
    IDLE = "idle"
    BUSY = "busy"
    EXITED = "exited"


@implementer(IWorker)
class BaseWorker:
    def __init__(self, lane: int, signal_manager: SignalManager):
        self.lane: int = lane
        self.signals: SignalManager = signal_manager
        self.state: WorkerState = WorkerState.STARTING
        self.request: TestRequest | None = None
        self.exit_code: int | None = None
        self.stopping: bool = False

    @property
    def name(self) -> str:
        return f"Worker{self.lane}"

    @property
    def alive(self) -> bool:
        return self.state is not WorkerState.EXITED

    def start(self) -> None:
        raise NotImplementedError

    def stop(self, timeout: float | None = None) -> None:
        raise NotImplementedError

    def kill(self) -> None:
        raise NotImplementedError

    def _send_request(self, request: TestRequest) -> None:
        raise NotImplementedError

    def assign(self, request: TestRequest) -> None:
        if self.state is not WorkerState.IDLE or self.stopping:
            raise RuntimeError(
                f"{self.name} cannot take {request.unit}: it is {self.state.value}"
            )
        self.request = request
        self.state = WorkerState.BUSY
        self.signals.send_catch_log(signals.test_started, worker=self, request=request)
        self._send_request(request)

    def _complete(self, result: TestResult) -> None:
        if self.request is None or self.request.id != result.id:
            logger.warning(
                "%(worker)s reported %(result)s which it was not running, ignoring it",
                {"worker": self.name, "result": result},
            )
            return
        self.request = None
        if self.state is WorkerState.BUSY:
            self.state = WorkerState.IDLE
        self.signals.send_catch_log(signals.test_completed, worker=self, result=result)

    def _exited(self, exit_code: int) -> None:
        request, self.request = self.request, None
        self.state = WorkerState.EXITED
        self.exit_code = exit_code
        self.signals.send_catch_log(
            signals.worker_exited, worker=self, exit_code=exit_code, request=request
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} {self.state.value}>"
