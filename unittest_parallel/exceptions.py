"""
unittest-parallel exceptions

Test failures are never raised as exceptions: they travel inside
:class:`~unittest_parallel.models.TestResult` objects. The exceptions below
signal infrastructure and usage problems only.
"""

from __future__ import annotations

from typing import Any


class WorkerSpawnError(Exception):
    """A worker process could not be started. Fatal to the whole run."""

    def __init__(self, lane: int, reason: Any):
        super().__init__(f"Unable to start worker {lane}: {reason}")
        self.lane = lane
        self.reason = reason


class ReplayError(Exception):
    """A replay source is unreadable or was specified incorrectly"""


class InvalidWriter(ValueError):
    """A writer specification is not in the ``format:filename`` form"""


class UsageError(Exception):
    """To indicate a command-line usage error"""

    def __init__(self, *a: Any, **kw: Any):
        self.print_help = kw.pop("print_help", True)
        super().__init__(*a, **kw)
