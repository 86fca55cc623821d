from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from twisted.internet.defer import Deferred
from twisted.internet.error import ProcessExitedAlready
from twisted.internet.protocol import ProcessProtocol

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from twisted.internet.interfaces import IDelayedCall, IProcessTransport
    from twisted.python.failure import Failure


logger = logging.getLogger(__name__)

STDIN_FD = 0
STDOUT_FD = 1
STDERR_FD = 2
RESULT_FD = 3


class ChannelHandler(Protocol):
    def stdout_received(self, data: bytes) -> None: ...

    def stderr_received(self, data: bytes) -> None: ...

    def result_received(self, data: bytes) -> None: ...

    def process_exited(self, exit_code: int) -> None: ...


class FourChannelProcess(ProcessProtocol):
    """Own one child process with four independent channels: stdin
    (coordinator to child), stdout and stderr (passed through untouched) and
    a result channel on file descriptor :data:`RESULT_FD`.

    Everything is driven by the reactor: :meth:`start` and :meth:`write`
    return immediately and the ``handler`` is called back as data arrives.
    ``handler.process_exited`` is only called once every channel has been
    drained and the process has been reaped, so no result can arrive after it.
    """

    def __init__(
        self,
        args: Sequence[str],
        handler: ChannelHandler,
        env: Mapping[str, str] | None = None,
        path: str | None = None,
    ):
        self.args: list[str] = list(args)
        self.handler: ChannelHandler = handler
        self.env: Mapping[str, str] | None = env
        self.path: str | None = path
        self.pid: int | None = None
        self.exit_code: int | None = None
        self.ended: Deferred[int] = Deferred()
        self._reactor: Any = None
        self._kill_call: IDelayedCall | None = None
        self._stdin_closed: bool = False

    @property
    def running(self) -> bool:
        return self.transport is not None and self.exit_code is None

    def start(self, reactor: Any = None) -> IProcessTransport:
        """Spawn the child process. Errors raised by the reactor while
        spawning (``OSError`` and friends) propagate to the caller."""
        if reactor is None:
            from twisted.internet import reactor
        self._reactor = reactor
        return reactor.spawnProcess(
            self,
            self.args[0],
            self.args,
            env=self.env,
            path=self.path,
            childFDs={STDIN_FD: "w", STDOUT_FD: "r", STDERR_FD: "r", RESULT_FD: "r"},
        )

    def write(self, data: bytes) -> None:
        """Append ``data`` to the child's stdin. No backpressure is applied."""
        if not self.running or self._stdin_closed:
            logger.debug("Not writing to closed process %(pid)r", {"pid": self.pid})
            return
        self.transport.write(data)

    def close(self, timeout: float | None = None) -> None:
        """Close the child's stdin and kill it if it is still alive after
        ``timeout`` seconds. Callers must always close, or the child may be
        left behind."""
        if not self.running:
            return
        if not self._stdin_closed:
            self._stdin_closed = True
            self.transport.closeStdin()
        if timeout is not None and self._kill_call is None:
            self._kill_call = self._reactor.callLater(timeout, self._kill_after_grace)

    def kill(self) -> None:
        if not self.running:
            return
        try:
            self.transport.signalProcess("KILL")
        except ProcessExitedAlready:
            pass

    def _kill_after_grace(self) -> None:
        self._kill_call = None
        if self.running:
            logger.warning(
                "Process %(pid)r did not exit in time, killing it", {"pid": self.pid}
            )
            self.kill()

    def connectionMade(self) -> None:
        self.pid = self.transport.pid

    def childDataReceived(self, childFD: int, data: bytes) -> None:
        if childFD == RESULT_FD:
            self.handler.result_received(data)
        elif childFD == STDOUT_FD:
            self.handler.stdout_received(data)
        elif childFD == STDERR_FD:
            self.handler.stderr_received(data)

    def processEnded(self, reason: Failure) -> None:
        exit_code = getattr(reason.value, "exitCode", None)
        if exit_code is None:
            # killed by a signal, report it the way subprocess does
            signal = getattr(reason.value, "signal", None)
            exit_code = -signal if signal else -1
        self.exit_code = exit_code
        if self._kill_call is not None and self._kill_call.active():
            self._kill_call.cancel()
        self._kill_call = None
        self.handler.process_exited(exit_code)
        self.ended.callback(exit_code)
