from __future__ import annotations

from typing import Any

from pydispatch import dispatcher

from unittest_parallel.utils import signal as _signal


class SignalManager:
    """Per-run event bus. Receivers are scoped to ``sender`` so that two
    distributors living in the same process never see each other's events.

    PyDispatcher only keeps weak references to bound methods: whoever
    connects a method is responsible for keeping its object alive (the
    distributor holds on to its listeners for that reason).
    """

    def __init__(self, sender: Any = dispatcher.Anonymous):
        self.sender: Any = sender

    def connect(self, receiver: Any, signal: Any, **kwargs: Any) -> None:
        """Call ``receiver`` whenever ``signal`` (one of
        :mod:`unittest_parallel.signals`) is sent by this manager."""
        kwargs.setdefault("sender", self.sender)
        dispatcher.connect(receiver, signal, **kwargs)

    def disconnect(self, receiver: Any, signal: Any, **kwargs: Any) -> None:
        kwargs.setdefault("sender", self.sender)
        dispatcher.disconnect(receiver, signal, **kwargs)

    def send_catch_log(self, signal: Any, **kwargs: Any) -> list[tuple[Any, Any]]:
        """Send ``signal`` to its receivers in connection order. A receiver
        that raises is logged and the others are still called."""
        kwargs.setdefault("sender", self.sender)
        return _signal.send_catch_log(signal, **kwargs)
