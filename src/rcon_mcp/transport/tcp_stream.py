"""TCP byte stream to an RCON server.

The session only needs ``read``/``write``/``close``; this class owns the
socket and turns socket failures into :class:`RconIOError`.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Optional

from ..exceptions import NotConnectedError, RconIOError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 25575
DEFAULT_TIMEOUT = 10.0


@dataclass
class StreamInfo:
    """Endpoints of an open stream."""

    host: str = ""
    port: int = DEFAULT_PORT
    local_address: str = ""


class TCPStream:
    """Blocking TCP stream.

    Usage::

        stream = TCPStream("127.0.0.1", 25575)
        stream.open()
        stream.write(packet_bytes)
        data = stream.read(12)
        stream.close()
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._sock: Optional[socket.socket] = None
        self._info = StreamInfo(host=host, port=port)

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def info(self) -> StreamInfo:
        return self._info

    def open(self) -> StreamInfo:
        """Connect to the server.

        Raises:
            RconIOError: If the connection is refused or times out.
        """
        try:
            sock = socket.create_connection((self._host, self._port), timeout=self._timeout)
        except OSError as e:
            raise RconIOError(
                f"Could not connect to RCON server {self._host}:{self._port}: {e}"
            ) from e

        sock.settimeout(self._timeout)
        self._sock = sock
        local = sock.getsockname()
        self._info = StreamInfo(
            host=self._host,
            port=self._port,
            local_address=f"{local[0]}:{local[1]}",
        )
        logger.info("Connected to %s:%d", self._host, self._port)
        return self._info

    def write(self, data: bytes) -> int:
        """Send all of ``data`` with a single ``sendall``.

        Raises:
            NotConnectedError: If the stream is not open.
            RconIOError: If the send fails.
        """
        sock = self._require_socket()
        try:
            sock.sendall(data)
        except OSError as e:
            raise RconIOError(f"Write to {self._host}:{self._port} failed: {e}") from e
        return len(data)

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; ``b""`` means the peer closed.

        Raises:
            NotConnectedError: If the stream is not open.
            RconIOError: On reset or timeout.
        """
        sock = self._require_socket()
        try:
            return sock.recv(size)
        except socket.timeout as e:
            raise RconIOError(f"Read from {self._host}:{self._port} timed out") from e
        except OSError as e:
            raise RconIOError(f"Read from {self._host}:{self._port} failed: {e}") from e

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._sock is None:
            return

        try:
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)
        finally:
            self._sock = None
            logger.info("Disconnected from %s:%d", self._host, self._port)

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise NotConnectedError("Stream is not open")
        return self._sock
