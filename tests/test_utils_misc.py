import signal

import pytest

from unittest_parallel.listeners.lane import LaneOutputFormatter
from unittest_parallel.utils.misc import load_object
from unittest_parallel.utils.ossignal import install_shutdown_handlers, signal_names


class TestLoadObject:
    def test_import_path(self):
        obj = load_object("unittest_parallel.listeners.lane.LaneOutputFormatter")
        assert obj is LaneOutputFormatter

    def test_callable_passthrough(self):
        assert load_object(LaneOutputFormatter) is LaneOutputFormatter

    def test_not_callable(self):
        with pytest.raises(TypeError):
            load_object(42)

    def test_not_a_full_path(self):
        with pytest.raises(ValueError, match="not a full import path"):
            load_object("LaneOutputFormatter")

    def test_missing_attribute(self):
        with pytest.raises(NameError, match="has no attribute 'Nope'"):
            load_object("unittest_parallel.listeners.lane.Nope")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_object("unittest_parallel.nope.Nope")


def test_signal_names():
    assert signal_names[signal.SIGINT] == "SIGINT"
    assert signal_names[signal.SIGTERM] == "SIGTERM"


def test_install_shutdown_handlers():
    def handler(signum, frame):
        pass

    previous = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
    try:
        install_shutdown_handlers(handler)
        assert signal.getsignal(signal.SIGINT) is handler
        assert signal.getsignal(signal.SIGTERM) is handler
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)


def test_install_shutdown_handlers_keeps_custom_sigint():
    def custom(signum, frame):
        pass

    def handler(signum, frame):
        pass

    previous = {s: signal.getsignal(s) for s in (signal.SIGINT, signal.SIGTERM)}
    try:
        signal.signal(signal.SIGINT, custom)
        install_shutdown_handlers(handler, override_sigint=False)
        assert signal.getsignal(signal.SIGINT) is custom
        assert signal.getsignal(signal.SIGTERM) is handler
    finally:
        for signum, old in previous.items():
            signal.signal(signum, old)
