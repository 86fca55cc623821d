"""Helper functions which don't fit anywhere else"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


def load_object(path: str | Callable[..., Any]) -> Any:
    """Import and return the object at the dotted ``path``, e.g.
    ``'unittest_parallel.listeners.lane.LaneOutputFormatter'``. Callables
    (a listener class set directly in ``FORMATTERS``) are returned as they are.
    """
    if not isinstance(path, str):
        if callable(path):
            return path
        raise TypeError(f"Expected an import path or a callable, got {type(path)}")

    module_name, _, name = path.rpartition(".")
    if not module_name:
        raise ValueError(f"Cannot load {path!r}: not a full import path")
    module = import_module(module_name)
    try:
        return getattr(module, name)
    except AttributeError:
        raise NameError(f"Module {module_name!r} has no attribute {name!r}") from None
