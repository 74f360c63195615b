"""
Single-run orchestrator: validate range -> resolve target -> scheduled
connect scan -> record report -> publish to sinks. Optional
Elasticsearch output never fails the run; it only marks it degraded.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from core.config import settings
from core.errors import SchedulerFaultError
from core.models import PortRange, ScanReport, ScanResult, Target
from core.resolver import resolve
from core.state import StateManager
from elk.adapter import ElasticsearchAdapter
from pipeline.scheduler import ConnectionScheduler, Probe
from probers.l4_tcp import tcp_probe

log = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        resolver: Callable[..., Target] = resolve,
        probe: Probe = tcp_probe,
        state: Optional[StateManager] = None,
        elk: Optional[ElasticsearchAdapter] = None,
    ) -> None:
        self.resolver = resolver
        self.probe = probe
        self.state = state or StateManager()
        self.elk = elk if elk is not None else (ElasticsearchAdapter() if settings.elasticsearch_url else None)
        self.degraded = False

    def scan(
        self,
        target: Union[str, Target],
        start: Optional[int] = None,
        end: Optional[int] = None,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        on_result: Optional[Callable[[ScanResult], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanReport:
        port_range = PortRange(
            settings.port_start if start is None else start,
            settings.port_end if end is None else end,
        )
        if not isinstance(target, Target):
            target = self.resolver(target, prefer_ipv4=settings.prefer_ipv4)

        scheduler = ConnectionScheduler(
            target,
            port_range,
            concurrency=concurrency,
            timeout=timeout,
            deadline=deadline,
            probe=self.probe,
            on_result=on_result,
            cancel_event=cancel_event,
        )
        try:
            report = scheduler.run()
        except SchedulerFaultError as exc:
            if exc.partial_report is not None:
                self.state.record_report(exc.partial_report)
            raise
        self.state.record_report(report)
        return report

    def publish(self, report: ScanReport, sink) -> str:
        """Write to the primary sink (errors propagate), then mirror to Elasticsearch."""
        destination = sink.write(report)
        self.emit_elk(report)
        return destination

    def emit_elk(self, report: ScanReport) -> None:
        if not self.elk:
            return
        try:
            self.elk.write(report)
            self.degraded = False
        except Exception as e:  # noqa: BLE001
            log.exception("ELK write failed | index=%s | err=%s", self.elk.index, e)
            self.degraded = True

    def report(self, target: str) -> List[Dict[str, Any]]:
        if self.elk and target:
            docs = self.elk.search_by_target(target)
            if docs:
                return self.elk.reports_from_docs(docs)
        return self.state.list_reports(target)

    def verify(self) -> Dict[str, bool]:
        elk_ok = self.elk.ping() if self.elk else False
        return {
            "elk_configured": self.elk is not None,
            "elk": elk_ok,
            "cache": self.state.cache_path is not None,
            "degraded": self.degraded,
        }
