"""
Report rendering: line-oriented text and JSON.
"""

from typing import List

from core.models import PortState, ScanReport, ScanResult


def format_result(r: ScanResult) -> str:
    return f"{r.port} {r.state.name} {r.service or ''}".rstrip()


def summary_line(report: ScanReport) -> str:
    status = "cancelled" if report.cancelled else "complete"
    return (
        f"# {report.target.host} ({report.target.address}) ports {report.port_start}-{report.port_end}: "
        f"open={report.count(PortState.OPEN)} closed={report.count(PortState.CLOSED)} "
        f"filtered={report.count(PortState.FILTERED)} scanned={len(report.results)} "
        f"elapsed={report.elapsed_s:.2f}s {status}"
    )


def render_lines(report: ScanReport, open_only: bool = False) -> List[str]:
    results = report.open_ports() if open_only else report.results
    lines = [format_result(r) for r in results]
    lines.append(summary_line(report))
    return lines


def render_text(report: ScanReport, open_only: bool = False) -> str:
    return "\n".join(render_lines(report, open_only=open_only)) + "\n"


def render_json(report: ScanReport, open_only: bool = False) -> str:
    if open_only:
        report = report.model_copy(update={"results": tuple(report.open_ports())})
    return report.model_dump_json(indent=2) + "\n"


def render(report: ScanReport, fmt: str = "text", open_only: bool = False) -> str:
    if fmt == "text":
        return render_text(report, open_only=open_only)
    if fmt == "json":
        return render_json(report, open_only=open_only)
    raise ValueError(f"Unsupported format: {fmt}")
