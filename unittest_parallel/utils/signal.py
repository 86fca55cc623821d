"""Helper functions for working with signals"""

from __future__ import annotations

import logging
from typing import Any as TypingAny

from pydispatch.dispatcher import Anonymous, Any, getAllReceivers, liveReceivers
from pydispatch.robustapply import robustApply
from twisted.internet.defer import Deferred
from twisted.python.failure import Failure

logger = logging.getLogger(__name__)


def send_catch_log(
    signal: TypingAny = Any,
    sender: TypingAny = Anonymous,
    *arguments: TypingAny,
    **named: TypingAny,
) -> list[tuple[TypingAny, TypingAny]]:
    """Call every live receiver of ``signal`` from ``sender`` and return
    ``(receiver, response)`` pairs.

    Receivers only get the keyword arguments they declare. An exception is
    logged and becomes a :class:`~twisted.python.failure.Failure` response,
    and the remaining receivers are still called. Listeners are synchronous:
    a receiver returning a Deferred is reported as an error.
    """
    responses: list[tuple[TypingAny, TypingAny]] = []
    for receiver in liveReceivers(getAllReceivers(sender, signal)):
        result: TypingAny
        try:
            result = robustApply(
                receiver, signal=signal, sender=sender, *arguments, **named
            )
        except Exception:
            result = Failure()
            logger.error(
                "Error caught on signal handler: %(receiver)s",
                {"receiver": receiver},
                exc_info=True,
            )
        else:
            if isinstance(result, Deferred):
                logger.error(
                    "Cannot return deferreds from signal handler: %(receiver)s",
                    {"receiver": receiver},
                )
        responses.append((receiver, result))
    return responses
