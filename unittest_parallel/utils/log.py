from __future__ import annotations

import logging
import pprint
import sys
from logging.config import dictConfig
from typing import TYPE_CHECKING

from twisted.python import log as twisted_log
from twisted.python.failure import Failure

import unittest_parallel
from unittest_parallel.settings import Settings, overridden_settings

if TYPE_CHECKING:
    from types import TracebackType

    from unittest_parallel.settings import BaseSettings


logger = logging.getLogger(__name__)

DEFAULT_LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "loggers": {
        "twisted": {"level": "ERROR"},
        "unittest_parallel": {"level": "DEBUG"},
    },
}

_root_handler: logging.Handler | None = None


def failure_to_exc_info(
    failure: Failure,
) -> tuple[type[BaseException], BaseException, TracebackType | None] | None:
    """Extract exc_info from Failure instances"""
    if isinstance(failure, Failure):
        assert failure.type
        assert failure.value
        return (
            failure.type,
            failure.value,
            failure.getTracebackObject(),
        )
    return None


class TopLevelFormatter(logging.Filter):
    """Keep only top level loggers' name (direct children from root) from
    records.

    This filter will replace unittest-parallel loggers' names with
    'unittest_parallel'. This mimics the old behavior of Twisted-based
    logging, where every message carried only the name of its system.

    Since it can't be set for just one logger (it won't propagate for its
    children), it's going to be set in the root handler, with a parametrized
    ``loggers`` list where it should act.
    """

    def __init__(self, loggers: list[str] | None = None):
        super().__init__()
        self.loggers: list[str] = loggers or []

    def filter(self, record: logging.LogRecord) -> bool:
        if any(record.name.startswith(logger + ".") for logger in self.loggers):
            record.name = record.name.split(".", 1)[0]
        return True


def configure_logging(
    settings: BaseSettings | None = None, install_root_handler: bool = True
) -> None:
    """
    Initialize logging defaults for unittest-parallel.

    :param settings: settings used to create and configure a handler for the
        root logger (default: None).
    :type settings: :class:`~unittest_parallel.settings.BaseSettings` or ``None``

    :param install_root_handler: whether to install root logging handler
        (default: True)
    :type install_root_handler: bool

    This function does:

    - Route warnings and twisted logging through Python standard logging
    - Assign DEBUG and ERROR level to unittest-parallel and Twisted loggers
      respectively
    - Route stdout to log if LOG_STDOUT setting is True

    When ``install_root_handler`` is True (default), this function also
    creates a handler for the root logger according to given settings
    (see :ref:`topics-logging-settings`).
    """
    if not sys.warnoptions:
        # Route warnings through python logging
        logging.captureWarnings(True)

    observer = twisted_log.PythonLoggingObserver("twisted")
    observer.start()

    dictConfig(DEFAULT_LOGGING)

    if settings is None:
        settings = Settings()

    if settings.getbool("LOG_STDOUT"):
        sys.stdout = StreamLogger(logging.getLogger("stdout"))

    if install_root_handler:
        install_root_handler_from_settings(settings)


def install_root_handler_from_settings(settings: BaseSettings) -> None:
    global _root_handler  # noqa: PLW0603

    if _root_handler is not None and _root_handler in logging.root.handlers:
        logging.root.removeHandler(_root_handler)
    logging.root.setLevel(logging.NOTSET)
    _root_handler = _get_handler(settings)
    logging.root.addHandler(_root_handler)


def _get_handler(settings: BaseSettings) -> logging.Handler:
    """Return a log handler object according to settings"""
    filename = settings.get("LOG_FILE")
    handler: logging.Handler
    if filename:
        mode = "a" if settings.getbool("LOG_FILE_APPEND") else "w"
        encoding = settings.get("LOG_ENCODING")
        handler = logging.FileHandler(filename, mode=mode, encoding=encoding)
    elif settings.getbool("LOG_ENABLED"):
        handler = logging.StreamHandler()
    else:
        handler = logging.NullHandler()

    formatter = logging.Formatter(
        fmt=settings.get("LOG_FORMAT"), datefmt=settings.get("LOG_DATEFORMAT")
    )
    handler.setFormatter(formatter)
    handler.setLevel(settings.get("LOG_LEVEL"))
    if settings.getbool("LOG_SHORT_NAMES"):
        handler.addFilter(TopLevelFormatter(["unittest_parallel"]))
    return handler


def log_run_info(settings: BaseSettings) -> None:
    logger.info(
        "unittest-parallel %(version)s started (python %(python)s)",
        {
            "version": unittest_parallel.__version__,
            "python": sys.version.split()[0],
        },
    )
    d = dict(overridden_settings(settings))
    logger.info("Overridden settings:\n%(settings)s", {"settings": pprint.pformat(d)})


def log_reactor_info() -> None:
    from twisted.internet import reactor

    logger.debug("Using reactor: %s.%s", reactor.__module__, reactor.__class__.__name__)


class StreamLogger:
    """Fake file-like stream object that redirects writes to a logger instance

    Taken from:
        https://www.electricmonk.nl/log/2011/08/14/redirect-stdout-and-stderr-to-a-logger-in-python/
    """

    def __init__(self, logger: logging.Logger, log_level: int = logging.INFO):
        self.logger: logging.Logger = logger
        self.log_level: int = log_level
        self.linebuf: str = ""

    def write(self, buf: str) -> None:
        for line in buf.rstrip().splitlines():
            self.logger.log(self.log_level, line.rstrip())

    def flush(self) -> None:
        for h in self.logger.handlers:
            h.flush()

