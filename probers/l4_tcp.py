"""
TCP connect probe using a plain connect() without crafting raw packets.
Each call makes exactly one attempt; no data is exchanged.

Classification policy:
  handshake completed           -> OPEN
  refused / reset by the peer   -> CLOSED
  timeout, any other OS error   -> FILTERED (indistinguishable from a drop)
Local resource exhaustion is not a port outcome and raises SocketExhaustedError;
the scheduler decides whether to back off or give up.
"""

import errno
import logging
import socket

from core.errors import SocketExhaustedError
from core.models import PortState

log = logging.getLogger(__name__)

RESOURCE_ERRNOS = frozenset(
    code for code in (
        getattr(errno, "EMFILE", None),
        getattr(errno, "ENFILE", None),
        getattr(errno, "ENOBUFS", None),
        getattr(errno, "ENOMEM", None),
    ) if code is not None
)


def tcp_probe(address: str, port: int, timeout: float = 1.0) -> PortState:
    try:
        sock = socket.create_connection((address, port), timeout=timeout)
    except socket.timeout:
        log.debug("%s:%d timed out after %.2fs", address, port, timeout)
        return PortState.FILTERED
    except (ConnectionRefusedError, ConnectionResetError):
        log.debug("%s:%d refused", address, port)
        return PortState.CLOSED
    except OSError as exc:
        if exc.errno in RESOURCE_ERRNOS:
            raise SocketExhaustedError(f"cannot allocate socket for {address}:{port}: {exc}") from exc
        log.debug("%s:%d unreachable: %s", address, port, exc)
        return PortState.FILTERED
    sock.close()
    return PortState.OPEN
