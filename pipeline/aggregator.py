"""
Result aggregation: probes complete in any order; the report is always
ordered by port. Insertion is lock-guarded and keyed by port, so a port
can hold at most one result. Finalization happens once and freezes the
collection.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from typing import Dict, Optional

from core.models import PortRange, PortState, ScanReport, ScanResult, Target

log = logging.getLogger(__name__)


class ResultAggregator:
    def __init__(self, target: Target, port_range: PortRange):
        self.target = target
        self.port_range = port_range
        self.started_at = dt.datetime.now(dt.timezone.utc)
        self._results: Dict[int, ScanResult] = {}
        self._lock = threading.Lock()
        self._report: Optional[ScanReport] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def report(self) -> Optional[ScanReport]:
        return self._report

    def add(self, result: ScanResult) -> bool:
        if result.port not in self.port_range:
            raise ValueError(f"port {result.port} outside {self.port_range}")
        with self._lock:
            if self._report is not None:
                log.debug("discarding port %d result after finalization", result.port)
                return False
            if result.port in self._results:
                log.warning("duplicate result for port %d ignored", result.port)
                return False
            self._results[result.port] = result
            return True

    def finalize(self, elapsed_s: float, cancelled: bool = False) -> ScanReport:
        with self._lock:
            if self._report is not None:
                return self._report
            ordered = tuple(self._results[p] for p in sorted(self._results))
            counts = {state.value: 0 for state in PortState}
            for r in ordered:
                counts[r.state.value] += 1
            self._report = ScanReport(
                target=self.target,
                port_start=self.port_range.start,
                port_end=self.port_range.end,
                results=ordered,
                counts=counts,
                elapsed_s=round(elapsed_s, 4),
                started_at=self.started_at,
                cancelled=cancelled,
            )
            return self._report
