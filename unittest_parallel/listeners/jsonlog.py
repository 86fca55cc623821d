from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

from unittest_parallel.listeners import TestListener
from unittest_parallel.protocol import encode_result
from unittest_parallel.workers.replay import LANE_KEY

if TYPE_CHECKING:
    from unittest_parallel.models import TestResult
    from unittest_parallel.workers import BaseWorker


class JsonOutputFormatter(TestListener):
    """Record every result as one JSON line tagged with its lane name.

    The output is the log read back by ``--replay FILE:LANE``.
    """

    def __init__(self, output: TextIO):
        self.output: TextIO = output

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        line = encode_result(result, **{LANE_KEY: worker.name})
        self.output.write(line.decode("utf-8"))
        self.output.flush()
