import re
import socket
import time
from typing import List, Optional

from loghandler import get_logger, get_traffic_logger
from .errors import ConnectionLost, ConnectionRefused, ConnectionTimeout

DEFAULT_RIGCTLD_PORT = 4532

# Closes an extended response: 'RPRT n' on its own line ('+' style) or as the
# last ';'-separated record of a one-line response.
_TERMINATOR_RE = re.compile(r"(?:^|;)RPRT -?\d+\s*$")


class RigctlConnection:
    """
    One TCP connection to rigctld with lockstep request/response exchange.

    Responsibilities:
      - Open/close the socket with low-latency options.
      - Write one request, read lines until the RPRT record that ends it.
      - Bound the whole exchange by `timeout` seconds.

    There is no internal locking: one request may be in flight at a time and
    callers sharing a connection across threads must serialize. After a
    timeout the connection is closed, because a late reply could no longer
    be told apart from the answer to the next request.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        timeout: float = 1.0,
        connect_timeout: float = 5.0,
    ):
        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)
        self.connect_timeout = float(connect_timeout)

        self._logger = get_logger()
        self._traffic = get_traffic_logger()
        self._sock: Optional[socket.socket] = None
        self._buffer = b""

    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        timeout: float = 1.0,
        connect_timeout: Optional[float] = None,
    ) -> "RigctlConnection":
        conn = cls(
            host,
            port,
            timeout=timeout,
            connect_timeout=timeout if connect_timeout is None else connect_timeout,
        )
        conn.connect()
        return conn

    # ---------- Public properties ----------

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    # ---------- TCP setup ----------

    def _apply_tcp_options(self, s: socket.socket):
        """Best-effort low-latency option; rigctld traffic is tiny request/response."""
        try:
            s.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass

    def connect(self):
        if self._sock is not None:
            return

        try:
            s = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        except socket.timeout as e:
            self._logger.error(
                f"[NET] Connect timeout after {self.connect_timeout:.1f}s to {self.endpoint}."
            )
            raise ConnectionTimeout(f"Timed out connecting to rigctld at {self.endpoint}") from e
        except OSError as e:
            self._logger.error(f"[NET] Connect error to {self.endpoint}: {e}")
            raise ConnectionRefused(f"Could not connect to rigctld at {self.endpoint}: {e}") from e

        self._apply_tcp_options(s)
        self._sock = s
        self._buffer = b""
        self._logger.debug(f"[NET] Connected to rigctld at {self.endpoint}")

    def close(self):
        s, self._sock = self._sock, None
        self._buffer = b""
        if s is None:
            return
        try:
            s.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        s.close()
        self._logger.debug(f"[NET] Closed connection to {self.endpoint}")

    disconnect = close

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ---------- Exchange ----------

    def exchange(self, request: bytes) -> str:
        """
        Send one request and return the full response text (lines joined by '\\n',
        trailing newline removed).
        """
        if self._sock is None:
            raise ConnectionLost(f"Connection to rigctld at {self.endpoint} is closed")

        self._traffic.debug(f"> {request.decode(errors='replace').rstrip()}")
        t0 = time.monotonic()
        deadline = t0 + self.timeout

        try:
            self._sock.settimeout(self.timeout)
            self._sock.sendall(request)
            lines: List[str] = []
            while True:
                line = self._readline(deadline)
                lines.append(line)
                if _TERMINATOR_RE.search(line):
                    break
        except socket.timeout:
            waited_ms = int((time.monotonic() - t0) * 1000)
            self.close()
            self._logger.error(
                f"[NET] No complete response from {self.endpoint} after {waited_ms} ms "
                f"(timeout={self.timeout:.2f}s). Connection closed."
            )
            raise ConnectionTimeout(
                f"rigctld at {self.endpoint} did not answer within {self.timeout:.2f}s"
            ) from None
        except ConnectionLost:
            self.close()
            raise
        except OSError as e:
            self.close()
            raise ConnectionLost(f"Communication error with rigctld at {self.endpoint}: {e}") from e

        response = "\n".join(lines)
        self._traffic.debug(f"< {response}")
        return response

    def _readline(self, deadline: float) -> str:
        """Return one LF-terminated line using the persistent buffer."""
        while b"\n" not in self._buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("Timeout receiving data")
            self._sock.settimeout(remaining)
            chunk = self._sock.recv(4096)
            if not chunk:
                raise ConnectionLost(f"Socket closed by rigctld at {self.endpoint}")
            self._buffer += chunk

        line, self._buffer = self._buffer.split(b"\n", 1)
        return line.decode(errors="replace").rstrip("\r")
