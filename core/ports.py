"""
Port range generation and port-spec parsing.
"""

from typing import Tuple

from core.errors import InvalidRangeError

MIN_PORT = 1
MAX_PORT = 65535


def _is_port_number(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_bounds(start: int, end: int) -> None:
    if not (_is_port_number(start) and _is_port_number(end)):
        raise InvalidRangeError(f"port bounds must be integers, got {start!r}-{end!r}")
    if start < MIN_PORT or end > MAX_PORT:
        raise InvalidRangeError(f"port range {start}-{end} outside {MIN_PORT}-{MAX_PORT}")
    if start > end:
        raise InvalidRangeError(f"port range start {start} is greater than end {end}")


def port_sequence(start: int, end: int) -> range:
    """
    Ascending ports from start to end inclusive. A range object is lazy,
    immutable and can be iterated any number of times.
    """
    check_bounds(start, end)
    return range(start, end + 1)


def parse_port_spec(spec: str) -> Tuple[int, int]:
    """
    Parse "START-END" or a single "PORT" into inclusive bounds.
    """
    spec = (spec or "").strip()
    if not spec:
        raise InvalidRangeError("empty port spec")
    start_s, sep, end_s = spec.partition("-")
    try:
        start = int(start_s)
        end = int(end_s) if sep else start
    except ValueError as exc:
        raise InvalidRangeError(f"invalid port spec {spec!r}") from exc
    check_bounds(start, end)
    return start, end
