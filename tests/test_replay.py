import io

import pytest
from testfixtures import LogCapture
from twisted.internet import task

from tests import make_result, make_units
from tests.test_distributor import FakeDistributor, Recorder, run_all
from unittest_parallel.distributor import Distributor
from unittest_parallel.exceptions import ReplayError
from unittest_parallel.listeners.jsonlog import JsonOutputFormatter
from unittest_parallel.locator import TestLocator
from unittest_parallel.models import Severity
from unittest_parallel.protocol import encode_result
from unittest_parallel.workers import WorkerState
from unittest_parallel.workers.process import WorkerProcess
from unittest_parallel.workers.replay import read_replay_log


def write_log(path, lanes):
    units = make_units(len(lanes))
    with open(path, "wb") as f:
        for unit, lane in zip(units, lanes):
            severities = (Severity.FAILURE,) if unit.id == 4 else ()
            f.write(encode_result(make_result(unit, *severities), worker=lane))
    return units


@pytest.fixture
def replay_file(tmp_path):
    path = tmp_path / "run.log"
    write_log(path, ["WorkerA", "WorkerB", "WorkerA", "WorkerB", "WorkerB"])
    return str(path)


class TestReadReplayLog:
    def test_lane_results_in_file_order(self, replay_file):
        log = read_replay_log(replay_file, "WorkerB")
        assert [r.id for r in log.results] == [1, 3, 4]
        assert [u.id for u in log.units] == [1, 3, 4]
        assert len(log) == 3

    def test_every_lane(self, replay_file):
        assert len(read_replay_log(replay_file)) == 5

    def test_malformed_lines_are_skipped(self, tmp_path):
        path = tmp_path / "run.log"
        write_log(path, ["WorkerA"])
        with open(path, "ab") as f:
            f.write(b"garbage\n")
            f.write(b'{"worker": "WorkerA", "id": 9}\n')
            f.write(
                b'{"worker": "WorkerA", "id": 10, "class": "a.B", "name": "c", '
                b'"elapsed": 0, "errors": [{"severity": 1, "message": "m"}]}\n'
            )
            f.write(
                b'{"worker": "WorkerA", "id": Infinity, "class": "a.B", "name": "c", '
                b'"elapsed": 0}\n'
            )
            f.write(b"[" * 100000 + b"\n")
        with LogCapture() as log:
            replay = read_replay_log(str(path), "WorkerA")
        assert len(replay) == 1
        assert "Skipping malformed result" in str(log)

    def test_unknown_lane(self, replay_file):
        with pytest.raises(ReplayError, match="No results recorded for Worker9"):
            read_replay_log(replay_file, "Worker9")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ReplayError, match="Unable to read replay log"):
            read_replay_log(str(tmp_path / "missing.log"), "WorkerA")

    def test_replay_spec(self, replay_file):
        locator = TestLocator()
        assert len(locator.get_tests_from_replay(f"{replay_file}:WorkerA")) == 2
        with pytest.raises(ReplayError, match="expected FILE:LANE"):
            locator.get_tests_from_replay("run.log")


class TestReplayRun:
    def run_replay(self, replay_file, lane="WorkerB"):
        clock = task.Clock()
        distributor = Distributor(
            read_replay_log(replay_file, lane), {"WORKERS": 4}, reactor=clock
        )
        recorder = Recorder()
        distributor.add_listener(recorder)
        outcome = []
        distributor.run().addCallback(outcome.append)
        clock.advance(0)
        return distributor, recorder, outcome

    def test_results_are_replayed_in_order(self, replay_file):
        distributor, recorder, outcome = self.run_replay(replay_file)
        assert recorder.of("begin") == [("begin", 1, 3)]
        assert [e[2] for e in recorder.of("completed")] == [1, 3, 4]
        assert recorder.events[-1] == ("end", 3, 3, "finished")
        assert outcome == ["finished"]

    def test_a_single_named_lane_and_no_process(self, replay_file):
        distributor, _, _ = self.run_replay(replay_file)
        (worker,) = distributor.workers
        assert worker.name == "WorkerB"
        assert not isinstance(worker, WorkerProcess)
        assert worker.state is WorkerState.EXITED

    def test_results_are_delivered_asynchronously(self, replay_file):
        clock = task.Clock()
        distributor = Distributor(read_replay_log(replay_file, "WorkerB"), reactor=clock)
        recorder = Recorder()
        distributor.add_listener(recorder)
        distributor.run()
        assert recorder.of("completed") == []
        clock.advance(0)
        assert len(recorder.of("completed")) == 3


def test_json_report_can_be_replayed(tmp_path):
    """Record a run with the json formatter, then replay one of its lanes."""
    output = io.StringIO()
    distributor = FakeDistributor(make_units(6), {"WORKERS": 2})
    distributor.add_listener(JsonOutputFormatter(output))
    distributor.run()
    run_all(distributor)

    path = tmp_path / "run.log"
    path.write_text(output.getvalue(), encoding="utf-8")
    recorded = [r.id for w in distributor.workers if w.name == "Worker1" for r in w.received]
    replay = read_replay_log(str(path), "Worker1")
    assert [r.id for r in replay.results] == recorded
