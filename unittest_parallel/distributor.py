from __future__ import annotations

import logging
import os
import secrets
import signal
import sys
from typing import TYPE_CHECKING, Any

from queuelib.queue import FifoMemoryQueue
from twisted.internet.defer import Deferred

from unittest_parallel import signals
from unittest_parallel.exceptions import WorkerSpawnError
from unittest_parallel.listeners import LISTENER_METHODS
from unittest_parallel.models import TestRequest, TestUnit
from unittest_parallel.settings import Settings
from unittest_parallel.signalmanager import SignalManager
from unittest_parallel.utils.conf import interpreter_options
from unittest_parallel.utils.log import (
    configure_logging,
    failure_to_exc_info,
    log_reactor_info,
    log_run_info,
)
from unittest_parallel.utils.ossignal import install_shutdown_handlers, signal_names
from unittest_parallel.workers import BaseWorker, WorkerState
from unittest_parallel.workers.process import WorkerProcess
from unittest_parallel.workers.replay import ReplayLog, ReplayWorker

if TYPE_CHECKING:
    from collections.abc import Iterable

    from twisted.python.failure import Failure

    from unittest_parallel.settings import BaseSettings


logger = logging.getLogger(__name__)

TOKEN_ENVVAR = "UNITTEST_PARALLEL_TOKEN"


class Distributor:
    """
    Distribute test units over a pool of workers.

    Workers pull work greedily: whenever one becomes idle it is handed the
    oldest pending unit, so fast workers end up running more tests. The run
    ends when nothing is pending and every dispatched request has been
    resolved, either by its result or by the death of its worker, or early
    when :meth:`cancel` is called.

    ``tests`` is either the units to run, in discovery order, or a
    :class:`~unittest_parallel.workers.replay.ReplayLog`, in which case a
    single replay lane answers from the log instead of running anything.

    Listeners must be added with :meth:`add_listener` before :meth:`run`.
    """

    def __init__(
        self,
        tests: Iterable[TestUnit] | ReplayLog,
        settings: dict[str, Any] | BaseSettings | None = None,
        reactor: Any = None,
    ):
        if isinstance(settings, dict) or settings is None:
            settings = Settings(settings)
        self.settings: BaseSettings = settings
        self.replay: ReplayLog | None = tests if isinstance(tests, ReplayLog) else None
        self.units: list[TestUnit] = list(
            self.replay.units if self.replay is not None else tests
        )
        self.signals: SignalManager = SignalManager(self)
        self.listeners: list[Any] = []
        self.workers: list[BaseWorker] = []
        self.pending: FifoMemoryQueue = FifoMemoryQueue()
        self.dispatched: int = 0
        self.executed: int = 0
        self.cancelled: bool = False
        self.reason: str | None = None
        self.running: bool = False
        self.token: str = secrets.token_hex(4)[:7]
        self._reactor: Any = reactor
        self._finished: Deferred[str] | None = None
        self._ended: bool = False

    @property
    def expected(self) -> int:
        return len(self.units)

    def add_listener(self, listener: Any) -> None:
        """Connect every lifecycle handler ``listener`` defines (see
        :mod:`unittest_parallel.listeners`). The distributor keeps a strong
        reference to the listener for its whole life."""
        if self.running or self._ended:
            raise RuntimeError("Listeners must be added before the run starts")
        self.listeners.append(listener)
        for signal_, method_name in LISTENER_METHODS.items():
            method = getattr(listener, method_name, None)
            if callable(method):
                self.signals.connect(method, signal_)

    def run(self, worker_count: int | None = None) -> Deferred[str]:
        """Start ``worker_count`` workers (the ``WORKERS`` setting by default)
        and begin dispatching.

        Returns a Deferred fired with the reason the run ended: ``finished``,
        the reason given to :meth:`cancel`, or ``workers_lost``. Raises
        :exc:`~unittest_parallel.exceptions.WorkerSpawnError` right away,
        before any test runs, if a worker cannot be spawned.
        """
        if self.running or self._ended:
            raise RuntimeError("A Distributor can only be run once")
        if worker_count is None:
            worker_count = self.settings.getint("WORKERS")
        if self.replay is not None:
            worker_count = 1
        if worker_count < 1:
            raise ValueError(f"At least one worker is needed, got {worker_count}")

        self.running = True
        self.settings.freeze()
        self._finished = Deferred()
        # connected after the listeners, so that every listener has seen an
        # event before the distributor reacts to it
        self.signals.connect(self._test_completed, signals.test_completed)
        self.signals.connect(self._worker_exited, signals.worker_exited)
        for unit in self.units:
            self.pending.push(unit)

        try:
            for lane in range(worker_count):
                worker = self._create_worker(lane)
                self.workers.append(worker)
                worker.start()
        except WorkerSpawnError as e:
            logger.error("%(error)s, aborting the run", {"error": e})
            self._abort()
            raise

        logger.info(
            "Running %(tests)d tests on %(workers)d workers",
            {"tests": self.expected, "workers": worker_count},
        )
        self.signals.send_catch_log(
            signals.run_started, worker_count=worker_count, test_count=self.expected
        )
        for worker in self.workers:
            self._dispatch(worker)
        self._maybe_finish()
        return self._finished

    def cancel(self, reason: str = "cancelled") -> None:
        """Stop dispatching and shut the workers down. Tests already running
        may finish until the shutdown grace period runs out."""
        if self.cancelled or self._ended:
            return
        self.cancelled = True
        self.reason = reason
        logger.info(
            "Cancelling run (%(reason)s), %(pending)d tests will not run",
            {"reason": reason, "pending": len(self.pending)},
        )
        if self.running:
            self._maybe_finish()

    def kill(self) -> None:
        """Kill every worker right away, abandoning whatever they run."""
        self.cancel("killed")
        for worker in self.workers:
            if worker.alive:
                worker.kill()

    def _create_worker(self, lane: int) -> BaseWorker:
        if self.replay is not None:
            return ReplayWorker(lane, self.signals, self.replay, reactor=self._reactor)
        return WorkerProcess(
            lane,
            self.signals,
            self._worker_args(),
            env=self._worker_env(lane),
            path=os.getcwd(),
            reactor=self._reactor,
        )

    def _worker_args(self) -> list[str]:
        memory_tracking = "true" if self.settings.getbool("MEMORY_TRACKING") else "false"
        return [
            sys.executable,
            *interpreter_options(self.settings.get("INTERPRETER_OPTIONS")),
            "-m",
            self.settings["WORKER_MODULE"],
            "--worker",
            "--memory-tracking",
            memory_tracking,
        ]

    def _worker_env(self, lane: int) -> dict[str, str]:
        env = os.environ.copy()
        env["UNITTEST_PARALLEL"] = "worker"
        env["UNITTEST_PARALLEL_LANE"] = str(lane)
        env[TOKEN_ENVVAR] = self.token
        paths = self.settings.getlist("WORKER_PYTHONPATH")
        if paths:
            if env.get("PYTHONPATH"):
                paths = [*paths, env["PYTHONPATH"]]
            env["PYTHONPATH"] = os.pathsep.join(paths)
        return env

    def _dispatch(self, worker: BaseWorker) -> None:
        if self.cancelled or worker.stopping or worker.state is not WorkerState.IDLE:
            return
        unit = self.pending.pop()
        if unit is None:
            return
        self.dispatched += 1
        logger.debug(
            "Dispatching %(unit)s to %(worker)s", {"unit": unit, "worker": worker.name}
        )
        worker.assign(TestRequest(unit, worker.lane))

    def _test_completed(self, worker: BaseWorker) -> None:
        self.executed += 1
        self._dispatch(worker)
        self._maybe_finish()

    def _worker_exited(self, worker: BaseWorker, request: TestRequest | None) -> None:
        if request is not None:
            logger.error(
                "%(unit)s was abandoned: %(worker)s exited while running it",
                {"unit": request.unit, "worker": worker.name},
            )
        self._maybe_finish()

    def _maybe_finish(self) -> None:
        if self._ended or not self.running:
            return
        if not any(worker.alive for worker in self.workers):
            if len(self.pending) and not self.cancelled:
                logger.error(
                    "All workers exited, %(pending)d tests were never run",
                    {"pending": len(self.pending)},
                )
                self.cancelled = True
                self.reason = "workers_lost"
            self._end()
            return
        busy = any(worker.state is WorkerState.BUSY for worker in self.workers)
        if self.cancelled or (not len(self.pending) and not busy):
            self._stop_workers()

    def _stop_workers(self) -> None:
        timeout = self.settings.getfloat("WORKER_SHUTDOWN_TIMEOUT")
        for worker in self.workers:
            worker.stop(timeout)

    def _end(self) -> None:
        self._ended = True
        self.running = False
        reason = self.reason or "finished"
        logger.info(
            "Run %(reason)s: %(executed)d/%(expected)d tests executed",
            {"reason": reason, "executed": self.executed, "expected": self.expected},
        )
        self.signals.send_catch_log(
            signals.run_finished,
            executed=self.executed,
            expected=self.expected,
            reason=reason,
        )
        assert self._finished is not None
        self._finished.callback(reason)

    def _abort(self) -> None:
        self.cancelled = True
        self.reason = "spawn_failed"
        self.running = False
        self._ended = True
        self.signals.disconnect(self._test_completed, signals.test_completed)
        self.signals.disconnect(self._worker_exited, signals.worker_exited)
        for worker in self.workers:
            if worker.alive:
                worker.kill()


class DistributorProcess(Distributor):
    """
    A :class:`Distributor` that also runs the Twisted reactor, configures
    top-level logging and handles shutdown signals: the first Ctrl-C cancels
    the run gracefully, a second one kills the workers.

    This is what the ``unittest-parallel`` command uses; use a plain
    :class:`Distributor` when a reactor is already running.
    """

    def __init__(
        self,
        tests: Iterable[TestUnit] | ReplayLog,
        settings: dict[str, Any] | BaseSettings | None = None,
        install_root_handler: bool = True,
    ):
        super().__init__(tests, settings)
        configure_logging(self.settings, install_root_handler)
        log_run_info(self.settings)

    def _signal_shutdown(self, signum: int, _: Any) -> None:
        from twisted.internet import reactor

        install_shutdown_handlers(self._signal_kill)
        signame = signal_names[signum]
        logger.info(
            "Received %(signame)s, shutting down gracefully. Send again to force",
            {"signame": signame},
        )
        reactor.callFromThread(self.cancel, "shutdown")

    def _signal_kill(self, signum: int, _: Any) -> None:
        from twisted.internet import reactor

        install_shutdown_handlers(signal.SIG_IGN)
        signame = signal_names[signum]
        logger.info(
            "Received %(signame)s twice, forcing unclean shutdown", {"signame": signame}
        )
        reactor.callFromThread(self.kill)

    def start(
        self, worker_count: int | None = None, install_signal_handlers: bool = True
    ) -> str | None:
        """
        Run the distributor inside the reactor and block until the run ends.

        Returns the reason the run ended.

        :param int worker_count: how many workers to start (default: the
            ``WORKERS`` setting)

        :param bool install_signal_handlers: whether to install the OS signal
            handlers from Twisted and unittest-parallel (default: True)
        """
        from twisted.internet import reactor

        log_reactor_info()
        outcome: list[str] = []
        d = self.run(worker_count)
        d.addCallback(outcome.append)
        d.addErrback(self._log_failure)
        d.addBoth(self._stop_reactor)
        if not self._ended:
            if install_signal_handlers:
                reactor.addSystemEventTrigger(
                    "after", "startup", install_shutdown_handlers, self._signal_shutdown
                )
            reactor.run(installSignalHandlers=install_signal_handlers)  # blocking call
        return outcome[0] if outcome else None

    def _log_failure(self, failure: Failure) -> None:
        logger.error(
            "Unhandled error while running tests",
            exc_info=failure_to_exc_info(failure),
        )

    def _stop_reactor(self, _: Any = None) -> None:
        from twisted.internet import reactor

        if not reactor.running:
            return
        try:
            reactor.stop()
        except RuntimeError:  # raised if already stopped or in shutdown stage
            pass
