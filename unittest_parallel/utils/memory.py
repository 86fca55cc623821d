from __future__ import annotations

import sys
from importlib import import_module


def get_peak_memory() -> int | None:
    """Return the peak resident set size of the current process in bytes, or
    ``None`` where the ``resource`` module is not available (Windows)."""
    try:
        resource = import_module("resource")
    except ImportError:
        return None
    size = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform != "darwin":
        # on macOS ru_maxrss is in bytes, on Linux it is in KB
        size *= 1024
    return size
