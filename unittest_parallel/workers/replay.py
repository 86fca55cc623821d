"""
Replay of a recorded run.

The ``json`` formatter records every result as one line tagged with the name
of the lane that produced it. Replaying such a log feeds the recorded results
back through the listeners, in file order, as if a live worker had produced
them. Nothing is executed and no process is spawned.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from unittest_parallel.exceptions import ReplayError
from unittest_parallel.protocol import RESULT_DECODE_ERRORS, parse_line, result_from_dict
from unittest_parallel.workers import BaseWorker, WorkerState

if TYPE_CHECKING:
    from twisted.internet.interfaces import IDelayedCall

    from unittest_parallel.models import TestRequest, TestResult, TestUnit
    from unittest_parallel.signalmanager import SignalManager


logger = logging.getLogger(__name__)

LANE_KEY = "worker"


class ReplayLog:
    def __init__(self, path: str, lane: str | None, results: list[TestResult]):
        self.path: str = path
        self.lane: str | None = lane
        self.results: list[TestResult] = results

    @property
    def units(self) -> list[TestUnit]:
        return [result.unit for result in self.results]

    def __len__(self) -> int:
        return len(self.results)

    def __repr__(self) -> str:
        return f"<ReplayLog {self.path}:{self.lane} results={len(self)}>"


def read_replay_log(path: str, lane: str | None = None) -> ReplayLog:
    """Load the results recorded in ``path``, keeping only those of ``lane``
    (all of them if ``lane`` is ``None``), in file order.

    Malformed lines are logged and skipped. :exc:`ReplayError` is raised if
    the file cannot be read or holds nothing for ``lane``.
    """
    results: list[TestResult] = []
    try:
        with open(path, "rb") as f:
            for lineno, line in enumerate(f, start=1):
                data = parse_line(line)
                if data is None:
                    continue
                if lane is not None and data.get(LANE_KEY) != lane:
                    continue
                try:
                    results.append(result_from_dict(data))
                except RESULT_DECODE_ERRORS:
                    logger.warning(
                        "Skipping malformed result at %(path)s:%(lineno)d",
                        {"path": path, "lineno": lineno},
                    )
    except OSError as e:
        raise ReplayError(f"Unable to read replay log {path}: {e}") from e
    if lane is not None and not results:
        raise ReplayError(f"No results recorded for {lane} in {path}")
    return ReplayLog(path, lane, results)


class ReplayWorker(BaseWorker):
    """A lane that answers every request with the next recorded result.

    Results are delivered on the next reactor iteration rather than from
    inside :meth:`assign`, so a long log never recurses through the
    distributor.
    """

    def __init__(
        self,
        lane: int,
        signal_manager: SignalManager,
        replay: ReplayLog,
        reactor: Any = None,
    ):
        super().__init__(lane, signal_manager)
        self.replay: ReplayLog = replay
        self._results: deque[TestResult] = deque()
        self._reactor: Any = reactor
        self._delivery: IDelayedCall | None = None

    @property
    def name(self) -> str:
        return self.replay.lane or super().name

    def start(self) -> None:
        if self._reactor is None:
            from twisted.internet import reactor

            self._reactor = reactor
        self._results.extend(self.replay.results)
        self.state = WorkerState.IDLE
        logger.debug(
            "%(worker)s replaying %(count)d results from %(path)s",
            {"worker": self.name, "count": len(self._results), "path": self.replay.path},
        )

    def _send_request(self, request: TestRequest) -> None:
        self._delivery = self._reactor.callLater(0, self._deliver, request)

    def _deliver(self, request: TestRequest) -> None:
        self._delivery = None
        if not self._results:
            logger.error(
                "%(worker)s has no recorded result left for %(unit)s",
                {"worker": self.name, "unit": request.unit},
            )
            self._exited(1)
            return
        self._complete(self._results.popleft())
        if self.stopping and self.alive:
            self._exited(0)

    def stop(self, timeout: float | None = None) -> None:
        if self.stopping or not self.alive:
            return
        self.stopping = True
        if self._delivery is None:
            self._reactor.callLater(0, self._finish)

    def _finish(self) -> None:
        if self.alive:
            self._exited(0)

    def kill(self) -> None:
        if self._delivery is not None and self._delivery.active():
            self._delivery.cancel()
        self._delivery = None
        if self.alive:
            self._exited(-1)
