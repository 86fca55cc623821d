import os
import sys

import pytest
from testfixtures import LogCapture
from twisted.internet import defer
from twisted.trial import unittest
from zope.interface.verify import verifyClass

from tests import make_result, make_units
from unittest_parallel import signals
from unittest_parallel.exceptions import WorkerSpawnError
from unittest_parallel.interfaces import IWorker
from unittest_parallel.models import TestRequest, TestUnit
from unittest_parallel.signalmanager import SignalManager
from unittest_parallel.workers import BaseWorker, WorkerState
from unittest_parallel.workers.process import WorkerProcess
from unittest_parallel.workers.replay import ReplayWorker

# answers each request on fd 3, in pieces, and exits on the terminate line;
# a request named "test_die" makes it exit without answering, "test_huge"
# answers with an oversize line and "test_garbled" sends a bad line first
PROTOCOL_CHILD = r"""
import json, os, sys
results = os.fdopen(3, "wb", buffering=0)
for line in sys.stdin.buffer:
    if line.strip() == b"EXIT":
        break
    request = json.loads(line)
    if request["name"] == "test_die":
        sys.exit(5)
    if request["name"] == "test_huge":
        results.write(b"x" * 200 + b"\n")
        continue
    if request["name"] == "test_garbled":
        results.write(b'{"id": 0, "class": "a", "name": "b", "elapsed": 0, '
                      b'"errors": [{"severity": 1, "message": "m"}]}\n')
    print("running", request["name"], flush=True)
    data = json.dumps({
        "id": request["id"], "class": request["class"], "name": request["name"],
        "elapsed": 0.001, "errors": [],
    }).encode() + b"\n"
    results.write(data[:10])
    results.write(data[10:])
"""


class EventLog:
    def __init__(self, signal_manager):
        self.events = []
        self.exited = defer.Deferred()
        self._completion = None
        for signal, name in (
            (signals.test_started, "started"),
            (signals.test_completed, "completed"),
            (signals.worker_stdout, "stdout"),
            (signals.worker_exited, "worker_exited"),
        ):
            signal_manager.connect(getattr(self, name), signal)

    def started(self, worker, request):
        self.events.append(("started", request.id))

    def next_completion(self):
        self._completion = defer.Deferred()
        return self._completion

    def completed(self, worker, result):
        self.events.append(("completed", result.id))
        if self._completion is not None:
            d, self._completion = self._completion, None
            d.callback(result)

    def stdout(self, worker, data):
        self.events.append(("stdout", data))

    def worker_exited(self, worker, exit_code, request):
        self.events.append(("exited", exit_code, request))
        self.exited.callback(exit_code)


def test_workers_provide_iworker():
    verifyClass(IWorker, BaseWorker)
    verifyClass(IWorker, WorkerProcess)
    verifyClass(IWorker, ReplayWorker)


class FakeWorker(BaseWorker):
    def start(self):
        self.state = WorkerState.IDLE

    def _send_request(self, request):
        pass


class TestBaseWorker:
    def setup_method(self):
        self.signals = SignalManager(object())
        self.log = EventLog(self.signals)
        self.worker = FakeWorker(2, self.signals)
        self.unit = make_units(1)[0]

    def test_name(self):
        assert self.worker.name == "Worker2"

    def test_assign_requires_idle(self):
        with pytest.raises(RuntimeError):
            self.worker.assign(TestRequest(self.unit, 2))
        self.worker.start()
        self.worker.assign(TestRequest(self.unit, 2))
        assert self.worker.state is WorkerState.BUSY
        with pytest.raises(RuntimeError):
            self.worker.assign(TestRequest(self.unit, 2))

    def test_complete(self):
        self.worker.start()
        self.worker.assign(TestRequest(self.unit, 2))
        self.worker._complete(make_result(self.unit))
        assert self.worker.state is WorkerState.IDLE
        assert self.worker.request is None
        assert self.log.events == [("started", 0), ("completed", 0)]

    def test_unsolicited_result_is_dropped(self):
        self.worker.start()
        with LogCapture() as log:
            self.worker._complete(make_result(self.unit))
        assert "which it was not running" in str(log)
        assert self.log.events == []

    def test_exit_abandons_request(self):
        self.worker.start()
        request = TestRequest(self.unit, 2)
        self.worker.assign(request)
        self.worker._exited(1)
        assert not self.worker.alive
        assert self.worker.request is None
        assert self.log.events[-1] == ("exited", 1, request)


class WorkerProcessTest(unittest.TestCase):
    def setUp(self):
        self.signals = SignalManager(object())
        self.log = EventLog(self.signals)
        self.worker = WorkerProcess(
            0,
            self.signals,
            [sys.executable, "-c", PROTOCOL_CHILD],
            env=os.environ.copy(),
        )

    @defer.inlineCallbacks
    def test_request_and_result(self):
        units = make_units(2)
        self.worker.start()
        assert self.worker.state is WorkerState.IDLE
        for unit in units:
            completed = self.log.next_completion()
            self.worker.assign(TestRequest(unit, 0))
            yield completed
            assert self.worker.state is WorkerState.IDLE
        self.worker.stop(10)
        exit_code = yield self.log.exited
        assert exit_code == 0
        assert [e for e in self.log.events if e[0] != "stdout"] == [
            ("started", 0),
            ("completed", 0),
            ("started", 1),
            ("completed", 1),
            ("exited", 0, None),
        ]
        stdout = b"".join(e[1] for e in self.log.events if e[0] == "stdout")
        assert stdout == b"running test_0\nrunning test_1\n"

    @defer.inlineCallbacks
    def test_death_while_running(self):
        self.worker.start()
        request = TestRequest(TestUnit(0, "a.B", "test_die"), 0)
        with LogCapture() as log:
            self.worker.assign(request)
            exit_code = yield self.log.exited
        assert exit_code == 5
        assert self.log.events[-1] == ("exited", 5, request)
        assert "Worker0 died: exitstatus=5" in str(log)
        assert self.worker.state is WorkerState.EXITED

    def test_spawn_failure(self):
        worker = WorkerProcess(0, self.signals, [sys.executable, None])
        with self.assertRaises(WorkerSpawnError) as cm:
            worker.start()
        assert cm.exception.lane == 0
        assert not worker.alive


    @defer.inlineCallbacks
    def test_malformed_line_does_not_stop_reading(self):
        self.worker.start()
        completed = self.log.next_completion()
        with LogCapture() as log:
            self.worker.assign(TestRequest(TestUnit(0, "a.B", "test_garbled"), 0))
            result = yield completed
        assert result.id == 0
        assert "Dropping malformed result" in str(log)
        self.worker.stop(10)
        exit_code = yield self.log.exited
        assert exit_code == 0

    @defer.inlineCallbacks
    def test_oversize_result_abandons_the_request(self):
        self.worker.reader.MAX_LENGTH = 64
        self.worker.start()
        request = TestRequest(TestUnit(0, "a.B", "test_huge"), 0)
        with LogCapture() as log:
            self.worker.assign(request)
            yield self.log.exited
        assert self.log.events[-1][2] == request
        assert "Worker0 sent an oversize result for" in str(log)
        assert not self.worker.alive
