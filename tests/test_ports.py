import pytest

from core.errors import InvalidRangeError
from core.models import PortRange
from core.ports import parse_port_spec, port_sequence


def test_port_sequence_is_inclusive_and_restartable():
    seq = port_sequence(20, 25)
    assert list(seq) == [20, 21, 22, 23, 24, 25]
    assert list(seq) == list(seq)


def test_single_port_range():
    assert list(port_sequence(443, 443)) == [443]


@pytest.mark.parametrize("start,end", [(0, 10), (10, 5), (1, 65536), (-1, 5), ("1", 2), (True, 2)])
def test_invalid_bounds_rejected(start, end):
    with pytest.raises(InvalidRangeError):
        port_sequence(start, end)


def test_port_range_validates_on_construction():
    with pytest.raises(InvalidRangeError):
        PortRange(100, 1)
    rng = PortRange(1, 100)
    assert len(rng) == 100
    assert 80 in rng and 101 not in rng
    assert str(rng) == "1-100"
    assert list(rng)[:3] == [1, 2, 3]


def test_parse_port_spec():
    assert parse_port_spec("1-1024") == (1, 1024)
    assert parse_port_spec(" 80 ") == (80, 80)
    assert parse_port_spec("1-65535") == (1, 65535)


@pytest.mark.parametrize("spec", ["", "a-b", "100-1", "0-10", "1-70000", "80-"])
def test_parse_port_spec_rejects_garbage(spec):
    with pytest.raises(InvalidRangeError):
        parse_port_spec(spec)
