from __future__ import annotations

import signal
from collections.abc import Callable
from types import FrameType
from typing import Any, Optional, Union

SignalHandlerT = Union[
    Callable[[int, Optional[FrameType]], Any], int, signal.Handlers, None
]

# e.g. {2: "SIGINT", 15: "SIGTERM"}
signal_names: dict[int, str] = {
    int(value): name
    for name, value in vars(signal).items()
    if name.startswith("SIG") and not name.startswith("SIG_") and isinstance(value, int)
}


def install_shutdown_handlers(
    function: SignalHandlerT, override_sigint: bool = True
) -> None:
    """Route SIGTERM, SIGINT and, on Windows, SIGBREAK to ``function``.

    With ``override_sigint=False`` a SIGINT handler someone else installed
    (a debugger, say) is left alone.
    """
    signal.signal(signal.SIGTERM, function)
    if override_sigint or signal.getsignal(signal.SIGINT) == signal.default_int_handler:
        signal.signal(signal.SIGINT, function)
    if hasattr(signal, "SIGBREAK"):
        signal.signal(signal.SIGBREAK, function)
