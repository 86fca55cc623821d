from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from unittest_parallel.listeners import TestListener

if TYPE_CHECKING:
    from unittest_parallel.distributor import Distributor
    from unittest_parallel.models import TestResult
    from unittest_parallel.workers import BaseWorker


logger = logging.getLogger(__name__)


class StopOnErrorListener(TestListener):
    """Cancel the run as soon as a test reports an error or a failure.

    Nothing new is dispatched after that; tests already running are allowed
    to finish until the workers' shutdown grace period runs out.
    """

    def __init__(self, distributor: Distributor):
        self.distributor: Distributor = distributor

    def test_completed(self, worker: BaseWorker, result: TestResult) -> None:
        if not result.failed or self.distributor.cancelled:
            return
        logger.info(
            "Stopping after %(severity)s in %(test)s",
            {"severity": result.severity.label, "test": result},
        )
        self.distributor.cancel("stop_on_error")
