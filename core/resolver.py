"""
Host resolution: turns the caller's host/IP string into a Target.
Resolution is a one-shot pre-step; it is never retried.
"""

import ipaddress
import logging
import socket
from typing import List

from core.errors import ResolutionError
from core.models import Target

log = logging.getLogger(__name__)


def _lookup(host: str) -> List[str]:
    try:
        infos = socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise ResolutionError(f"failed to resolve {host}: {exc}") from exc
    addrs: List[str] = []
    for info in infos:
        addr = info[4][0]
        if addr not in addrs:
            addrs.append(addr)
    return addrs


def target_from_ip(value: str) -> Target:
    """Validate an IP literal without touching DNS."""
    try:
        ip = ipaddress.ip_address(value.strip())
    except ValueError as exc:
        raise ResolutionError(f"invalid IP address provided: {value}") from exc
    return Target(host=value.strip(), address=str(ip))


def resolve(host: str, prefer_ipv4: bool = True) -> Target:
    host = (host or "").strip()
    if not host:
        raise ResolutionError("empty target")
    try:
        return target_from_ip(host)
    except ResolutionError:
        pass

    addrs = _lookup(host)
    if not addrs:
        raise ResolutionError(f"no addresses found for {host}")
    if prefer_ipv4:
        v4 = [a for a in addrs if ipaddress.ip_address(a).version == 4]
        if v4:
            addrs = v4
    log.debug("resolved %s -> %s", host, addrs)
    return Target(host=host, address=addrs[0])
