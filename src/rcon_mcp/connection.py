"""RCON session: login handshake and command exchange over one stream.

A session is strictly request/response. Request ids only detect a
desynchronized stream; they are never used to reorder responses. One
session must not be driven from several threads without a lock around
each :meth:`Connection.cmd` call.

Usage::

    conn = (
        Connection.builder()
        .enable_minecraft_quirks(True)
        .connect("localhost:25575", "password")
    )
    print(conn.cmd("list"))
    conn.close()
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Optional, Protocol, Tuple, Union

from .exceptions import (
    AuthenticationError,
    CommandTooLongError,
    NotConnectedError,
    ProtocolError,
    RconError,
)
from .protocol.packet import INT32_MAX, Packet, PacketType, deserialize, serialize
from .protocol.quirks import BASELINE, FACTORIO, MINECRAFT, SOURCE, Quirks
from .transport.tcp_stream import DEFAULT_PORT, DEFAULT_TIMEOUT, TCPStream

logger = logging.getLogger(__name__)

INITIAL_PACKET_ID = 1

Address = Union[str, Tuple[str, int]]


class Stream(Protocol):
    def open(self) -> object: ...
    def read(self, size: int) -> bytes: ...
    def write(self, data: bytes) -> object: ...
    def close(self) -> None: ...


StreamFactory = Callable[[str, int, Optional[float]], Stream]


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    CLOSED = "closed"


def parse_address(address: Address) -> tuple[str, int]:
    """Split ``"host:port"``, ``"[v6]:port"`` or ``(host, port)``.

    A bare host without a port uses the default RCON port.
    """
    if isinstance(address, tuple):
        if len(address) != 2:
            raise ValueError(f"Address tuple must be (host, port), got {address!r}")
        host, port = address
        return str(host), _check_port(int(port))

    if not isinstance(address, str) or not address.strip():
        raise ValueError(f"Invalid address {address!r}")

    text = address.strip()
    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep:
            raise ValueError(f"Unterminated IPv6 address in {address!r}")
        if not rest:
            return host, DEFAULT_PORT
        if not rest.startswith(":"):
            raise ValueError(f"Invalid address {address!r}")
        port_text = rest[1:]
    elif text.count(":") == 1:
        host, port_text = text.split(":")
    else:
        return text, DEFAULT_PORT

    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"Invalid port in address {address!r}") from None
    return host, _check_port(port)


def _check_port(port: int) -> int:
    if not 0 < port < 65536:
        raise ValueError(f"Port must be 1-65535, got {port}")
    return port


class Connection:
    """An RCON session bound to one open stream."""

    def __init__(self, stream: Stream, quirks: Quirks = BASELINE) -> None:
        self._stream = stream
        self._quirks = quirks
        self._next_packet_id = INITIAL_PACKET_ID
        self._state = SessionState.UNAUTHENTICATED

    @staticmethod
    def builder() -> ConnectionBuilder:
        return ConnectionBuilder()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def quirks(self) -> Quirks:
        return self._quirks

    @property
    def connected(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    def authenticate(self, password: str) -> None:
        """Log in with ``password``.

        Raises:
            AuthenticationError: If the server answers with a negative id.
            ProtocolError: If the reply id does not match the login request.
            RconIOError: If the stream fails.
            DecodeError: If the reply cannot be decoded.
        """
        if self._state is not SessionState.UNAUTHENTICATED:
            raise RconError(f"Cannot authenticate a session in state {self._state.value}")

        self._state = SessionState.AUTHENTICATING
        try:
            request_id = self._send(PacketType.AUTH, password)
            response = self._receive_auth_response()

            if response.is_error():
                raise AuthenticationError("Authentication failed: server rejected the password")
            if response.id != request_id and self._quirks.require_matching_auth_id:
                raise ProtocolError(
                    f"Auth response id {response.id} does not match request id {request_id}"
                )
        except BaseException:
            self._shutdown(SessionState.FAILED)
            raise

        self._state = SessionState.AUTHENTICATED
        logger.info("Authenticated")

    def cmd(self, command: str) -> str:
        """Run ``command`` on the server and return its full output.

        Raises:
            NotConnectedError: If the session is not authenticated.
            CommandTooLongError: If the dialect limits command length and
                ``command`` exceeds it. The session stays usable.
            ProtocolError: If a response carries an unexpected id.
            RconIOError: If the stream fails.
            DecodeError: If a response cannot be decoded.
        """
        if self._state is not SessionState.AUTHENTICATED:
            raise NotConnectedError(f"Session is {self._state.value}, not authenticated")

        limit = self._quirks.max_command_length
        if limit is not None and len(command.encode("utf-8")) > limit:
            raise CommandTooLongError(
                f"Command is {len(command.encode('utf-8'))} bytes, limit is {limit}"
            )

        # Any interruption from here on leaves the read position unknown
        try:
            command_id = self._send(PacketType.EXEC_COMMAND, command)
            if self._quirks.command_delay:
                time.sleep(self._quirks.command_delay)

            if self._quirks.multi_packet_responses:
                return self._receive_multi_packet_response(command_id)
            return self._receive_single_packet_response(command_id)
        except BaseException:
            self._shutdown(SessionState.CLOSED)
            raise

    def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        if self._state is SessionState.FAILED:
            self._shutdown(SessionState.FAILED)
        else:
            self._shutdown(SessionState.CLOSED)

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Connection(state={self._state.value}, quirks={self._quirks})"

    def _receive_auth_response(self) -> Packet:
        while True:
            packet = self._receive()
            if packet.type is PacketType.AUTH_RESPONSE:
                return packet
            if not self._quirks.skip_packets_before_auth_response:
                return packet
            logger.debug("Skipping %r while waiting for auth response", packet)

    def _receive_single_packet_response(self, command_id: int) -> str:
        packet = self._receive()
        if packet.id != command_id:
            raise ProtocolError(
                f"Response id {packet.id} does not match command id {command_id}"
            )
        return packet.body

    def _receive_multi_packet_response(self, command_id: int) -> str:
        # Servers answer in order, so the reply to an empty follow-up
        # request marks the end of a split response.
        marker_id = self._send(PacketType.EXEC_COMMAND, "")
        chunks: list[str] = []
        while True:
            packet = self._receive()
            if packet.id == marker_id:
                return "".join(chunks)
            if packet.id != command_id:
                raise ProtocolError(
                    f"Response id {packet.id} matches neither command id "
                    f"{command_id} nor marker id {marker_id}"
                )
            chunks.append(packet.body)

    def _send(self, packet_type: PacketType, body: str) -> int:
        packet_id = self._generate_packet_id()
        packet = Packet(id=packet_id, type=packet_type, body=body)
        serialize(packet, self._stream)
        if packet_type is PacketType.AUTH:
            logger.debug("Sent AUTH id=%d", packet_id)
        else:
            logger.debug("Sent %r", packet)
        return packet_id

    def _receive(self) -> Packet:
        packet = deserialize(self._stream)
        logger.debug("Received %r (length=%d)", packet, packet.length)
        return packet

    def _generate_packet_id(self) -> int:
        # Only positive ids: negative ones mean a rejected login
        packet_id = self._next_packet_id
        if self._next_packet_id >= INT32_MAX:
            self._next_packet_id = INITIAL_PACKET_ID
        else:
            self._next_packet_id += 1
        return packet_id

    def _shutdown(self, state: SessionState) -> None:
        if self._state not in (SessionState.CLOSED, SessionState.FAILED):
            try:
                self._stream.close()
            except OSError as e:
                logger.warning("Error closing stream: %s", e)
        self._state = state


class ConnectionBuilder:
    """Collects dialect toggles before connecting.

    Unset toggles leave the strict baseline protocol in place.
    """

    def __init__(self) -> None:
        self._dialects: dict[str, Quirks] = {}
        self._quirks = BASELINE
        self._timeout: Optional[float] = DEFAULT_TIMEOUT
        self._stream_factory: StreamFactory = TCPStream

    def enable_minecraft_quirks(self, enabled: bool = True) -> ConnectionBuilder:
        return self._toggle("minecraft", MINECRAFT, enabled)

    def enable_factorio_quirks(self, enabled: bool = True) -> ConnectionBuilder:
        return self._toggle("factorio", FACTORIO, enabled)

    def enable_source_quirks(self, enabled: bool = True) -> ConnectionBuilder:
        return self._toggle("source", SOURCE, enabled)

    def quirks(self, quirks: Quirks) -> ConnectionBuilder:
        """Add an explicit quirk set on top of any enabled dialects."""
        self._quirks = quirks
        return self

    def timeout(self, seconds: Optional[float]) -> ConnectionBuilder:
        """Socket timeout for connect and every read; ``None`` blocks forever."""
        self._timeout = seconds
        return self

    def stream_factory(self, factory: StreamFactory) -> ConnectionBuilder:
        self._stream_factory = factory
        return self

    def build_quirks(self) -> Quirks:
        quirks = self._quirks
        for dialect in self._dialects.values():
            quirks = quirks.merge(dialect)
        return quirks

    def connect(self, address: Address, password: str) -> Connection:
        """Open the stream and log in.

        Raises:
            ValueError: If ``address`` cannot be parsed.
            RconIOError: If the server cannot be reached.
            AuthenticationError: If the password is rejected.
        """
        host, port = parse_address(address)
        quirks = self.build_quirks()
        stream = self._stream_factory(host, port, self._timeout)
        stream.open()

        conn = Connection(stream, quirks)
        conn.authenticate(password)
        return conn

    def _toggle(self, name: str, quirks: Quirks, enabled: bool) -> ConnectionBuilder:
        if enabled:
            self._dialects[name] = quirks
        else:
            self._dialects.pop(name, None)
        return self


def connect(
    address: Address,
    password: str,
    quirks: Quirks = BASELINE,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> Connection:
    """Connect and log in with a fixed quirk set."""
    return Connection.builder().quirks(quirks).timeout(timeout).connect(address, password)
