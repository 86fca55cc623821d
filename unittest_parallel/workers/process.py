from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from unittest_parallel import signals
from unittest_parallel.exceptions import WorkerSpawnError
from unittest_parallel.ipc.process import FourChannelProcess
from unittest_parallel.ipc.reader import ResultLineReader
from unittest_parallel.protocol import TERMINATE, decode_result, encode_request
from unittest_parallel.workers import BaseWorker, WorkerState

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from unittest_parallel.models import TestRequest
    from unittest_parallel.signalmanager import SignalManager


logger = logging.getLogger(__name__)


class WorkerProcess(BaseWorker):
    """A lane backed by a live worker process.

    Requests are written to the child's stdin, results are read back from
    its result channel, and stdout/stderr are republished verbatim as
    ``worker_stdout``/``worker_stderr`` signals.
    """

    def __init__(
        self,
        lane: int,
        signal_manager: SignalManager,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        path: str | None = None,
        reactor: Any = None,
    ):
        super().__init__(lane, signal_manager)
        self.process = FourChannelProcess(args, self, env=env, path=path)
        self.reader = ResultLineReader(self._line_received, self._line_dropped)
        self._reactor = reactor

    @property
    def pid(self) -> int | None:
        return self.process.pid

    def start(self) -> None:
        try:
            self.process.start(self._reactor)
        except (OSError, TypeError, ValueError) as e:
            self.state = WorkerState.EXITED
            raise WorkerSpawnError(self.lane, e) from e
        self.state = WorkerState.IDLE
        logger.debug(
            "%(worker)s started: pid=%(pid)r", {"worker": self.name, "pid": self.pid}
        )

    def _send_request(self, request: TestRequest) -> None:
        self.process.write(encode_request(request))

    def stop(self, timeout: float | None = None) -> None:
        if self.stopping or not self.alive:
            return
        self.stopping = True
        self.process.write(TERMINATE)
        self.process.close(timeout)

    def kill(self) -> None:
        self.process.kill()

    def _line_received(self, line: bytes) -> None:
        result = decode_result(line)
        if result is not None:
            self._complete(result)

    def _line_dropped(self, size: int) -> None:
        # the dropped line was the only answer the running request will get
        if self.request is not None and self.alive:
            logger.error(
                "%(worker)s sent an oversize result for %(unit)s, killing it",
                {"worker": self.name, "unit": self.request.unit},
            )
            self.kill()

    def stdout_received(self, data: bytes) -> None:
        logger.debug("%(worker)s/stdout: %(data)r", {"worker": self.name, "data": data})
        self.signals.send_catch_log(signals.worker_stdout, worker=self, data=data)

    def stderr_received(self, data: bytes) -> None:
        logger.debug("%(worker)s/stderr: %(data)r", {"worker": self.name, "data": data})
        self.signals.send_catch_log(signals.worker_stderr, worker=self, data=data)

    def result_received(self, data: bytes) -> None:
        self.reader.dataReceived(data)

    def process_exited(self, exit_code: int) -> None:
        leftover = self.reader.flush()
        if leftover:
            logger.warning(
                "%(worker)s exited with an incomplete result line: %(data)r",
                {"worker": self.name, "data": leftover},
            )
        if self.request is not None:
            logger.error(
                "%(worker)s died: exitstatus=%(code)r while running %(unit)s",
                {"worker": self.name, "code": exit_code, "unit": self.request.unit},
            )
        elif exit_code:
            logger.warning(
                "%(worker)s died: exitstatus=%(code)r",
                {"worker": self.name, "code": exit_code},
            )
        else:
            logger.debug("%(worker)s finished", {"worker": self.name})
        self._exited(exit_code)
