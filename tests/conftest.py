import threading

import pytest

from core.models import PortState, Target
from core.state import StateManager
from pipeline.orchestrator import Orchestrator


class FakeTransport:
    """Deterministic probe: listed ports are open, everything else gets `default`."""

    def __init__(self, open_ports=(), default=PortState.CLOSED, overrides=None):
        self.open_ports = set(open_ports)
        self.default = default
        self.overrides = dict(overrides or {})
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, address, port, timeout):
        with self._lock:
            self.calls.append(port)
        if port in self.overrides:
            return self.overrides[port]
        if port in self.open_ports:
            return PortState.OPEN
        return self.default


@pytest.fixture
def target():
    return Target(host="example.test", address="127.0.0.1")


@pytest.fixture
def fake_transport():
    return FakeTransport(open_ports={80})


@pytest.fixture
def make_orchestrator():
    def _make(probe, resolver=None, elk=None):
        if resolver is None:
            def resolver(host, prefer_ipv4=True):
                return Target(host=host, address="127.0.0.1")
        return Orchestrator(resolver=resolver, probe=probe, state=StateManager(), elk=elk)

    return _make


@pytest.fixture
def make_transport():
    return FakeTransport
