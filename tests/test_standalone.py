import queue
import threading

import pytest

from collector_agent.service import ServiceError
from collector_agent.standalone import CollectorStatus, StandaloneCollectorService


class FakeCollector:
    def __init__(self, run_exc=None, statuses=None, stop_gate=None):
        self.run_exc = run_exc
        self.statuses = statuses if statuses is not None else queue.Queue()
        self.stop_gate = stop_gate
        self.ran = False
        self.stopped = False

    def run(self):
        self.ran = True
        if self.run_exc is not None:
            raise self.run_exc

    def status(self):
        return self.statuses

    def stop(self):
        if self.stop_gate is not None:
            self.stop_gate.wait()
        self.stopped = True


def _status_queue(status):
    q = queue.Queue(maxsize=1)
    q.put(status)
    return q


def test_starts_and_stops_normally():
    col = FakeCollector()
    srv = StandaloneCollectorService(col)
    srv.start()
    assert col.ran is True
    assert srv.error().qsize() == 0
    srv.stop(1.0)
    assert col.stopped is True


def test_run_errors():
    run_error = RuntimeError("run failed")
    col = FakeCollector(run_exc=run_error)
    srv = StandaloneCollectorService(col)
    with pytest.raises(ServiceError) as info:
        srv.start()
    assert info.value.__cause__ is run_error
    assert "failed while starting collector" in str(info.value)
    assert srv.error().qsize() == 0


def test_stop_deadline_passed():
    gate = threading.Event()
    col = FakeCollector(stop_gate=gate)
    srv = StandaloneCollectorService(col)
    srv.start()
    assert srv.error().qsize() == 0
    try:
        with pytest.raises(ServiceError) as info:
            srv.stop(0)
        assert isinstance(info.value.__cause__, TimeoutError)
        assert "failed while waiting for service shutdown" in str(info.value)
    finally:
        gate.set()


def test_collector_status_has_error():
    col_err = RuntimeError("Collector errored")
    col = FakeCollector(statuses=_status_queue(CollectorStatus(running=False, err=col_err)))
    srv = StandaloneCollectorService(col)
    srv.start()
    try:
        err = srv.error().get(timeout=1.0)
        assert err is col_err
        assert srv.error().qsize() == 0
    finally:
        srv.stop(1.0)


def test_collector_status_not_running():
    col = FakeCollector(statuses=_status_queue(CollectorStatus(running=False)))
    srv = StandaloneCollectorService(col)
    srv.start()
    try:
        err = srv.error().get(timeout=1.0)
        assert "collector unexpectedly stopped running" in str(err)
        assert srv.error().qsize() == 0
    finally:
        srv.stop(1.0)


def test_running_status_reports_nothing():
    col = FakeCollector(statuses=_status_queue(CollectorStatus(running=True)))
    srv = StandaloneCollectorService(col)
    srv.start()
    try:
        with pytest.raises(queue.Empty):
            srv.error().get(timeout=0.3)
    finally:
        srv.stop(1.0)