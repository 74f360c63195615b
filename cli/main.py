import argparse
import json
import logging
import signal
import sys
import threading

from core.config import settings
from core.errors import InvalidRangeError, ResolutionError, SchedulerFaultError, SinkWriteError
from core.models import PortState
from core.ports import parse_port_spec
from core.resolver import target_from_ip
from pipeline.orchestrator import Orchestrator
from probers.services import WELL_KNOWN_SERVICES
from report.render import render_lines
from report.sink import FileSink

log = logging.getLogger("badmap")

EXIT_OK = 0
EXIT_RESOLUTION = 1
EXIT_USAGE = 2
EXIT_SCHEDULER_FAULT = 3
EXIT_SINK = 4


def _print(obj):
    print(json.dumps(obj, indent=2, default=str))


def _error(msg: str):
    print(msg, file=sys.stderr)


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _announce(result):
    if result.state is PortState.OPEN:
        log.info("port %d is open (%s)", result.port, result.service)


def cmd_scan(args) -> int:
    try:
        start, end = parse_port_spec(args.ports) if args.ports else (None, None)
    except InvalidRangeError as exc:
        _error(f"invalid port range: {exc}")
        return EXIT_USAGE

    orch = Orchestrator()
    cancel_event = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())
    try:
        target = target_from_ip(args.ip) if args.ip else args.domain
        report = orch.scan(
            target,
            start=start,
            end=end,
            concurrency=args.concurrency,
            timeout=args.timeout,
            deadline=args.deadline,
            on_result=_announce,
            cancel_event=cancel_event,
        )
    except InvalidRangeError as exc:
        _error(f"invalid port range: {exc}")
        return EXIT_USAGE
    except ResolutionError as exc:
        _error(str(exc))
        return EXIT_RESOLUTION
    except SchedulerFaultError as exc:
        _error(f"scan aborted: {exc}")
        if exc.partial_report is not None:
            print("\n".join(render_lines(exc.partial_report, open_only=True)))
        return EXIT_SCHEDULER_FAULT
    finally:
        signal.signal(signal.SIGINT, previous)

    print("\n".join(render_lines(report, open_only=True)))

    sink = FileSink(args.output_filename, fmt=args.format, open_only=args.open_only)
    try:
        path = orch.publish(report, sink)
    except SinkWriteError as exc:
        _error(f"failed to save results: {exc}")
        return EXIT_SINK
    print(f"Results saved to {path}")
    return EXIT_OK


def cmd_report(args) -> int:
    orch = Orchestrator()
    _print(orch.report(args.target))
    return EXIT_OK


def cmd_services(args) -> int:
    for port, name in sorted(WELL_KNOWN_SERVICES.items()):
        print(f"{port} {name}")
    return EXIT_OK


def cmd_verify(args) -> int:
    orch = Orchestrator()
    _print(orch.verify())
    return EXIT_OK


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return n


def _positive_float(value: str) -> float:
    f = float(value)
    if f <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return f


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="badmap", description="TCP connect port scanner (single host)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers()

    p_scan = sub.add_parser("scan", help="Connect-scan a port range on one host")
    who = p_scan.add_mutually_exclusive_group(required=True)
    who.add_argument("-i", "--ip", help="target IP address")
    who.add_argument("-d", "--domain", help="target domain name")
    p_scan.add_argument("-o", "--output-filename", default=settings.output_path, help="report destination")
    p_scan.add_argument("-p", "--ports", help=f"START-END or PORT (default {settings.port_start}-{settings.port_end})")
    p_scan.add_argument("-c", "--concurrency", type=_positive_int, help=f"max in-flight probes (default {settings.concurrency})")
    p_scan.add_argument("-t", "--timeout", type=_positive_float, help=f"per-attempt timeout seconds (default {settings.connect_timeout_s})")
    p_scan.add_argument("--deadline", type=_positive_float, help="overall scan deadline in seconds")
    p_scan.add_argument("--format", choices=["text", "json"], default=settings.output_format)
    p_scan.add_argument("--open-only", action="store_true", help="only write open ports")
    p_scan.set_defaults(func=cmd_scan)

    p_report = sub.add_parser("report", help="Show stored reports for a target")
    p_report.add_argument("target")
    p_report.set_defaults(func=cmd_report)

    p_services = sub.add_parser("services", help="List well-known service labels")
    p_services.set_defaults(func=cmd_services)

    p_verify = sub.add_parser("verify", help="Config + ES connectivity check")
    p_verify.set_defaults(func=cmd_verify)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    if hasattr(args, "func"):
        return args.func(args)
    parser.print_help()
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
