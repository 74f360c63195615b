"""
Error taxonomy for a scan run. Per-port connection outcomes are never
errors; they are folded into PortState classifications by the probe.
"""

from typing import Optional


class ScanError(Exception):
    """Base class for fatal scan errors."""


class InvalidRangeError(ScanError):
    pass


class ResolutionError(ScanError):
    pass


class SchedulerFaultError(ScanError):
    """Systemic failure while probing; carries whatever was collected so far."""

    def __init__(self, message: str, partial_report=None):
        super().__init__(message)
        self.partial_report = partial_report


class SocketExhaustedError(ScanError):
    """Local socket allocation failed (EMFILE and friends); the port has no outcome yet."""


class SinkWriteError(ScanError):
    def __init__(self, message: str, report=None, destination: Optional[str] = None):
        super().__init__(message)
        self.report = report
        self.destination = destination
