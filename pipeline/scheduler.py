"""
Bounded-concurrency connect scheduler.

Ports are dispatched in ascending order to a thread pool, never more than
`concurrency` probes in flight. Each completion frees a slot for the next
pending port. A deadline or an external cancel event stops dispatching;
probes still in flight are abandoned and their outcomes discarded, while
probes that already finished are kept. A probe that cannot get a socket is
re-queued and the in-flight limit drops to what the host can sustain; the
scan only faults when a lone retry still finds no socket.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable, Deque, Dict, Optional, Set

from core.config import settings
from core.errors import SchedulerFaultError, SocketExhaustedError
from core.models import PortRange, PortState, ScanReport, ScanResult, ScanTask, Target
from pipeline.aggregator import ResultAggregator
from probers import services
from probers.l4_tcp import tcp_probe

log = logging.getLogger(__name__)

Probe = Callable[[str, int, float], PortState]


class ConnectionScheduler:
    def __init__(
        self,
        target: Target,
        port_range: PortRange,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        probe: Probe = tcp_probe,
        on_result: Optional[Callable[[ScanResult], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        poll_interval: float = 0.05,
    ):
        self.target = target
        self.port_range = port_range
        self.concurrency = settings.concurrency if concurrency is None else concurrency
        self.timeout = settings.connect_timeout_s if timeout is None else timeout
        self.deadline = settings.scan_deadline_s if deadline is None else deadline
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.deadline is not None and self.deadline <= 0:
            raise ValueError("deadline must be > 0")
        self.probe = probe
        self.on_result = on_result
        self.cancel_event = cancel_event or threading.Event()
        self.poll_interval = poll_interval
        self.aggregator = ResultAggregator(target, port_range)

    def cancel(self) -> None:
        """Ask the scan to stop early."""
        self.cancel_event.set()

    def _should_stop(self, deadline_at: Optional[float]) -> bool:
        if self.cancel_event.is_set():
            return True
        return deadline_at is not None and time.monotonic() >= deadline_at

    def _classify(self, task: ScanTask, fut: Future) -> ScanResult:
        try:
            state = fut.result()
        except (SchedulerFaultError, SocketExhaustedError):
            raise
        except Exception as exc:  # noqa: BLE001
            raise SchedulerFaultError(f"probe for port {task.port} failed: {exc}") from exc
        service = services.identify(task.port) if state is PortState.OPEN else None
        return ScanResult(port=task.port, state=state, service=service)

    def _record(self, result: ScanResult) -> None:
        if not self.aggregator.add(result) or not self.on_result:
            return
        try:
            self.on_result(result)
        except Exception:  # noqa: BLE001
            log.exception("on_result callback failed for port %d", result.port)

    def run(self) -> ScanReport:
        log.info(
            "scanning %s (%s) ports %s concurrency=%d timeout=%.2fs deadline=%s",
            self.target.host, self.target.address, self.port_range,
            self.concurrency, self.timeout, self.deadline,
        )
        started = time.monotonic()
        deadline_at = started + self.deadline if self.deadline is not None else None
        ports = iter(self.port_range)
        pending: Dict[Future, ScanTask] = {}
        retry: Deque[int] = deque()
        retried: Set[int] = set()
        limit = self.concurrency
        dispatched = 0
        fault: Optional[SchedulerFaultError] = None
        pool = ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="scan-probe")

        def submit_next() -> bool:
            nonlocal dispatched
            if retry:
                port = retry.popleft()
            else:
                port = next(ports, None)
                if port is None:
                    return False
                dispatched += 1
            task = ScanTask(target=self.target, port=port)
            try:
                fut = pool.submit(self.probe, self.target.address, port, self.timeout)
            except RuntimeError as exc:
                raise SchedulerFaultError(f"cannot dispatch probe for port {port}: {exc}") from exc
            pending[fut] = task
            return True

        def refill() -> None:
            while len(pending) < limit and not self._should_stop(deadline_at) and submit_next():
                pass

        def back_off(task: ScanTask, exc: SocketExhaustedError) -> None:
            nonlocal limit
            # no socket even with nothing else open: systemic
            if not pending and task.port in retried:
                raise SchedulerFaultError(str(exc)) from exc
            retried.add(task.port)
            retry.append(task.port)
            limit = max(1, len(pending))
            log.warning("socket exhaustion on port %d, in-flight limit lowered to %d", task.port, limit)

        def harvest(done, stopping: bool = False) -> None:
            for fut in done:
                task = pending.pop(fut)
                try:
                    result = self._classify(task, fut)
                except SocketExhaustedError as exc:
                    if stopping:
                        continue
                    back_off(task, exc)
                    continue
                self._record(result)

        try:
            refill()
            while pending:
                if self._should_stop(deadline_at):
                    harvest([f for f in pending if f.done()], stopping=True)
                    break
                wait_for = self.poll_interval
                if deadline_at is not None:
                    wait_for = max(0.0, min(wait_for, deadline_at - time.monotonic()))
                done, _ = wait(list(pending), timeout=wait_for, return_when=FIRST_COMPLETED)
                harvest(done)
                refill()
        except SchedulerFaultError as exc:
            fault = exc
        finally:
            if pending or fault is not None:
                pool.shutdown(wait=False, cancel_futures=True)
            else:
                pool.shutdown(wait=True)

        cancelled = fault is not None or bool(pending) or bool(retry) or dispatched < len(self.port_range)
        report = self.aggregator.finalize(time.monotonic() - started, cancelled=cancelled)
        if fault is not None:
            log.error("scan of %s aborted after %d results: %s", self.target.host, len(report.results), fault)
            fault.partial_report = report
            raise fault
        if cancelled:
            log.warning(
                "scan of %s cancelled: %d results, %d probes abandoned",
                self.target.host, len(report.results), len(pending),
            )
        else:
            log.info(
                "scan of %s finished in %.2fs: open=%d closed=%d filtered=%d",
                self.target.host, report.elapsed_s, report.count(PortState.OPEN),
                report.count(PortState.CLOSED), report.count(PortState.FILTERED),
            )
        return report


def scan(target: Target, port_range: PortRange, **kwargs) -> ScanReport:
    return ConnectionScheduler(target, port_range, **kwargs).run()
