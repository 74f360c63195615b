import pytest

from core.errors import InvalidRangeError, ResolutionError, SchedulerFaultError, SinkWriteError
from core.models import PortState, Target
from report.sink import FileSink


def test_scan_records_report(make_orchestrator, fake_transport):
    orch = make_orchestrator(fake_transport)
    report = orch.scan("example.test", start=1, end=100, concurrency=20, timeout=0.5)
    assert report.target.host == "example.test"
    assert len(report.results) == 100
    assert orch.state.latest("example.test").results == report.results


def test_start_after_end_dispatches_nothing(make_orchestrator, fake_transport):
    resolved = []

    def resolver(host, prefer_ipv4=True):
        resolved.append(host)
        return Target(host=host, address="127.0.0.1")

    orch = make_orchestrator(fake_transport, resolver=resolver)
    with pytest.raises(InvalidRangeError):
        orch.scan("example.test", start=100, end=1)
    assert resolved == []
    assert fake_transport.calls == []


def test_resolution_failure_dispatches_nothing(make_orchestrator, fake_transport):
    def resolver(host, prefer_ipv4=True):
        raise ResolutionError(f"failed to resolve {host}")

    orch = make_orchestrator(fake_transport, resolver=resolver)
    with pytest.raises(ResolutionError):
        orch.scan("nowhere.invalid", start=1, end=10)
    assert fake_transport.calls == []


def test_resolved_target_skips_resolver(make_orchestrator, fake_transport):
    def resolver(host, prefer_ipv4=True):
        raise AssertionError("resolver should not be called")

    orch = make_orchestrator(fake_transport, resolver=resolver)
    report = orch.scan(Target(host="10.0.0.1", address="10.0.0.1"), start=79, end=81, concurrency=3, timeout=0.5)
    assert [r.state for r in report.results] == [PortState.CLOSED, PortState.OPEN, PortState.CLOSED]


def test_fault_keeps_partial_report(make_orchestrator):
    def probe(address, port, timeout):
        if port == 3:
            raise SchedulerFaultError("no sockets")
        return PortState.CLOSED

    orch = make_orchestrator(probe)
    with pytest.raises(SchedulerFaultError):
        orch.scan("example.test", start=1, end=5, concurrency=1, timeout=0.5)
    stored = orch.state.latest("example.test")
    assert stored.cancelled
    assert [r.port for r in stored.results] == [1, 2]


def test_publish_writes_file(make_orchestrator, fake_transport, tmp_path):
    orch = make_orchestrator(fake_transport)
    report = orch.scan("example.test", start=75, end=85, concurrency=4, timeout=0.5)
    out = tmp_path / "output.txt"
    assert orch.publish(report, FileSink(str(out), fmt="text")) == str(out)
    assert "80 OPEN http" in out.read_text().splitlines()


def test_sink_failure_leaves_report_intact(make_orchestrator, fake_transport, tmp_path):
    orch = make_orchestrator(fake_transport)
    report = orch.scan("example.test", start=79, end=81, concurrency=3, timeout=0.5)
    before = report.model_dump()
    with pytest.raises(SinkWriteError) as excinfo:
        orch.publish(report, FileSink(str(tmp_path), fmt="text"))
    assert excinfo.value.report is report
    assert report.model_dump() == before


def test_elk_failure_marks_degraded(make_orchestrator, fake_transport, tmp_path):
    class BrokenElk:
        index = "badmap-ports"

        def ping(self):
            return False

        def write(self, report):
            raise SinkWriteError("cluster down", report=report, destination=self.index)

    orch = make_orchestrator(fake_transport, elk=BrokenElk())
    report = orch.scan("example.test", start=80, end=80, concurrency=1, timeout=0.5)
    orch.publish(report, FileSink(str(tmp_path / "out.txt")))
    assert orch.degraded
    assert orch.verify()["degraded"] is True
