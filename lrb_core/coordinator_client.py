"""
coordinator_client.py

CoordinatorClient: talks to the history-loading notifier (the readiness
coordinator) over a line-oriented ASCII protocol. Every command opens its own
TCP connection, performs a single round trip and closes the connection again.

    done?  -> yes    history has finished loading
    ruok   -> imok   liveness check
    shtdn  -> (none) ask the coordinator to shut down

Transport failures never propagate to callers. The ``probe_*`` methods report
them as ProbeResult.UNREACHABLE; the boolean helpers fold them into ``False``.
"""
from __future__ import annotations

import logging
log = logging.getLogger(__name__)

import socket
from enum import Enum
from typing import Callable, Optional, Tuple

CMD_DONE = "done?"
CMD_RUOK = "ruok"
CMD_SHUTDOWN = "shtdn"

REPLY_DONE = "yes"
REPLY_RUOK = "imok"

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8087

ConnectFn = Callable[[Tuple[str, int], Optional[float]], socket.socket]


class ProbeResult(Enum):
    YES = "yes"                  # expected reply received
    NO = "no"                    # any other reply, including none at all
    UNREACHABLE = "unreachable"  # connect, send or read failed


class CoordinatorClient:
    """
    Stateless client for the readiness coordinator.

    ``timeout`` applies to connect and read; ``None`` blocks indefinitely.
    ``connect`` is injectable for tests and defaults to
    :func:`socket.create_connection`.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: Optional[float] = None,
        *,
        connect: ConnectFn = socket.create_connection,
    ):
        self.host = host
        self.port = int(port)
        self.timeout = timeout
        self._connect = connect

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    # --- public API ---

    def probe_readiness(self) -> ProbeResult:
        """Send ``done?``; YES iff the trimmed reply is ``yes``."""
        return self._probe(CMD_DONE, REPLY_DONE)

    def query_readiness(self) -> bool:
        return self.probe_readiness() is ProbeResult.YES

    def probe_liveness(self) -> ProbeResult:
        """Send ``ruok``; YES iff the trimmed reply is ``imok``."""
        return self._probe(CMD_RUOK, REPLY_RUOK)

    def check_liveness(self) -> bool:
        return self.probe_liveness() is ProbeResult.YES

    def request_shutdown(self) -> None:
        """Send ``shtdn`` and close without waiting for a reply."""
        try:
            sock = self._connect(self.address, self.timeout)
        except OSError as e:
            log.warning(f"Shutdown request to {self.host}:{self.port} failed: {e}")
            return
        try:
            sock.sendall(_encode(CMD_SHUTDOWN))
        except OSError as e:
            log.warning(f"Shutdown request to {self.host}:{self.port} failed: {e}")
        finally:
            sock.close()

    # --- helpers ---

    def _probe(self, command: str, expected: str) -> ProbeResult:
        try:
            reply = self._round_trip(command)
        except OSError as e:
            log.debug(f"'{command}' to {self.host}:{self.port} failed: {e}")
            return ProbeResult.UNREACHABLE
        if reply.strip() == expected:
            return ProbeResult.YES
        log.debug(f"'{command}' answered {reply.strip()!r}")
        return ProbeResult.NO

    def _round_trip(self, command: str) -> str:
        """Send ``command`` and return the first reply line ('' on EOF)."""
        sock = self._connect(self.address, self.timeout)
        try:
            sock.sendall(_encode(command))
            with sock.makefile("rb") as reader:
                raw = reader.readline()
        finally:
            sock.close()
        return raw.decode("ascii", errors="replace")


def _encode(command: str) -> bytes:
    return f"{command}\n".encode("ascii")


__all__ = [
    "CoordinatorClient",
    "ProbeResult",
    "CMD_DONE",
    "CMD_RUOK",
    "CMD_SHUTDOWN",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
]
