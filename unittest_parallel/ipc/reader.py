from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from twisted.protocols.basic import LineReceiver

if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger(__name__)


class ResultLineReader(LineReceiver):
    """Split a result channel into lines.

    Bytes may arrive in chunks of any size: every complete line is passed to
    ``line_received`` exactly once and in arrival order, never split or
    merged. It is fed directly through :meth:`dataReceived`, without a
    transport of its own.

    A line longer than ``MAX_LENGTH`` is skipped up to its delimiter and
    reported to ``line_dropped`` once; the lines after it are still read.
    """

    delimiter = b"\n"
    MAX_LENGTH = 16 * 1024 * 1024

    def __init__(
        self,
        line_received: Callable[[bytes], None],
        line_dropped: Callable[[int], None] | None = None,
    ):
        self._line_received = line_received
        self._line_dropped = line_dropped
        self._skipping: bool = False
        self._skipped: int = 0
        self._rest: bytes = b""

    def dataReceived(self, data: bytes) -> None:
        while data:
            if self._skipping:
                end = data.find(self.delimiter)
                if end == -1:
                    self._skipped += len(data)
                    return
                self._skipping = False
                self._drop(self._skipped + end)
                data = data[end + len(self.delimiter) :]
                continue
            super().dataReceived(data)
            data, self._rest = self._rest, b""

    def lineReceived(self, line: bytes) -> None:
        self._line_received(line.rstrip(b"\r"))

    def lineLengthExceeded(self, line: bytes) -> None:
        # the whole buffer is handed over: the oversize line, and possibly its
        # delimiter followed by more lines, which dataReceived() feeds back
        end = line.find(self.delimiter)
        if end == -1:
            self._skipping = True
            self._skipped = len(line)
            return
        self._drop(end)
        self._rest = line[end + len(self.delimiter) :]

    def _drop(self, size: int) -> None:
        logger.warning(
            "Dropping %(size)d bytes from a result channel: line longer than %(max)d bytes",
            {"size": size, "max": self.MAX_LENGTH},
        )
        if self._line_dropped is not None:
            self._line_dropped(size)

    def flush(self) -> bytes:
        """Return and forget an incomplete trailing line, if any."""
        self._skipping = False
        self._skipped = 0
        return self.clearLineBuffer()
