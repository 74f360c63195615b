import pytest

from core.errors import SinkWriteError
from core.models import PortState, ScanReport, ScanResult, Target
from elk import adapter


class FakeClient:
    def __init__(self, healthy=True):
        self.healthy = healthy

    def ping(self):
        if not self.healthy:
            raise ConnectionError("down")
        return True


def _report():
    return ScanReport(
        target=Target(host="example.test", address="192.0.2.10"),
        port_start=79,
        port_end=80,
        results=(
            ScanResult(port=79, state=PortState.CLOSED),
            ScanResult(port=80, state=PortState.OPEN, service="http"),
        ),
        counts={"open": 1, "closed": 1, "filtered": 0},
    )


def test_write_indexes_one_doc_per_port(monkeypatch):
    batches = []
    monkeypatch.setattr(adapter.helpers, "bulk", lambda client, actions, **kwargs: batches.append(actions))
    es = adapter.ElasticsearchAdapter(client=FakeClient())
    assert es.write(_report()) == es.index
    docs = [a["_source"] for batch in batches for a in batch]
    assert [(d["port"], d["state"], d["service_guess"]) for d in docs] == [(79, "closed", None), (80, "open", "http")]
    assert all(a["_index"] == es.index for a in batches[0])


def test_write_retries_then_raises(monkeypatch):
    attempts = []

    def failing_bulk(client, actions, **kwargs):
        attempts.append(1)
        raise RuntimeError("bulk rejected")

    monkeypatch.setattr(adapter.helpers, "bulk", failing_bulk)
    monkeypatch.setattr(adapter.time, "sleep", lambda s: None)
    es = adapter.ElasticsearchAdapter(client=FakeClient())
    with pytest.raises(SinkWriteError):
        es.write(_report())
    assert len(attempts) == 3


def test_ping():
    assert adapter.ElasticsearchAdapter(client=FakeClient()).ping() is True
    assert adapter.ElasticsearchAdapter(client=FakeClient(healthy=False)).ping() is False


def _run(host, started, ports, cancelled=False):
    results = tuple(
        ScanResult(port=p, state=PortState.OPEN, service="http") if p == 80 else ScanResult(port=p, state=PortState.FILTERED)
        for p in ports
    )
    counts = {"open": 0, "closed": 0, "filtered": 0}
    for r in results:
        counts[r.state.value] += 1
    return ScanReport(
        target=Target(host=host, address="192.0.2.10"),
        port_start=ports[0],
        port_end=ports[-1],
        results=results,
        counts=counts,
        elapsed_s=1.5,
        started_at=started,
        cancelled=cancelled,
    )


def test_docs_regroup_into_reports():
    older = _run("example.test", "2026-01-01T00:00:00+00:00", [79, 80, 81])
    newer = _run("example.test", "2026-01-02T00:00:00+00:00", [80, 81], cancelled=True)
    docs = list(reversed(adapter.ElasticsearchAdapter.report_docs(newer) + adapter.ElasticsearchAdapter.report_docs(older)))
    reports = adapter.ElasticsearchAdapter.reports_from_docs(docs)
    assert reports == [older.model_dump(mode="json"), newer.model_dump(mode="json")]


def test_report_shape_same_with_and_without_elk(make_orchestrator, fake_transport):
    plain = make_orchestrator(fake_transport)
    plain.scan("example.test", start=79, end=81, concurrency=3, timeout=0.5)
    from_state = plain.report("example.test")

    class SearchClient(FakeClient):
        def search(self, **kwargs):
            docs = adapter.ElasticsearchAdapter.report_docs(plain.state.latest("example.test"))
            return {"hits": {"hits": [{"_source": d} for d in docs]}}

    with_elk = make_orchestrator(fake_transport, elk=adapter.ElasticsearchAdapter(client=SearchClient()))
    from_elk = with_elk.report("example.test")
    assert from_elk == from_state
