"""RCON packet encoder and decoder.

Packet layout (all integers signed 32-bit little-endian)::

    +----------+---------+---------+------------------+------------+
    |  Length  |   ID    |  Type   |       Body       | Terminator |
    | 4 bytes  | 4 bytes | 4 bytes | Length - 10 B    | 0x00 0x00  |
    +----------+---------+---------+------------------+------------+

- Length: size of everything after itself (id + type + body + 2)
- ID: chosen by the client, echoed by the server; -1 on a failed login
- Type: 3 = Auth, 2 = ExecCommand (request) / AuthResponse (response),
  0 = ResponseValue
- Body: UTF-8 text
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union

from ..exceptions import DecodeError, RconIOError

HEADER = struct.Struct("<iii")
HEADER_SIZE = HEADER.size  # 12
TERMINATOR = b"\x00\x00"
# id(4) + type(4) + terminator(2); the length field does not count itself
LENGTH_OVERHEAD = 10

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class Direction(Enum):
    """Which side sent a packet. Decides what type value 2 means."""

    REQUEST = "request"
    RESPONSE = "response"


class PacketType(Enum):
    """The four packet types the protocol defines."""

    AUTH = "auth"
    AUTH_RESPONSE = "auth_response"
    EXEC_COMMAND = "exec_command"
    RESPONSE_VALUE = "response_value"

    @property
    def wire_value(self) -> int:
        return _WIRE_VALUES[self]


_WIRE_VALUES: dict[PacketType, int] = {
    PacketType.AUTH: 3,
    PacketType.AUTH_RESPONSE: 2,
    PacketType.EXEC_COMMAND: 2,
    PacketType.RESPONSE_VALUE: 0,
}


@dataclass(frozen=True)
class UnknownType:
    """A type value outside the protocol's known set, kept verbatim."""

    raw: int

    @property
    def wire_value(self) -> int:
        return self.raw

    def __repr__(self) -> str:
        return f"UnknownType({self.raw})"


AnyPacketType = Union[PacketType, UnknownType]


def packet_type_from_wire(raw: int, direction: Direction = Direction.RESPONSE) -> AnyPacketType:
    """Map a raw type integer to a packet type.

    Value 2 is ExecCommand on requests and AuthResponse on responses.
    Anything outside ``{0, 2, 3}`` becomes :class:`UnknownType`.
    """
    if raw == 3:
        return PacketType.AUTH
    if raw == 2:
        if direction is Direction.RESPONSE:
            return PacketType.AUTH_RESPONSE
        return PacketType.EXEC_COMMAND
    if raw == 0:
        return PacketType.RESPONSE_VALUE
    return UnknownType(raw)


class Sink(Protocol):
    def write(self, data: bytes) -> object: ...


class Source(Protocol):
    def read(self, size: int) -> bytes: ...


@dataclass(frozen=True)
class Packet:
    """A single RCON packet."""

    id: int
    type: AnyPacketType
    body: str = ""

    @property
    def length(self) -> int:
        """Value of the length field: ``10 + len(body in bytes)``."""
        return LENGTH_OVERHEAD + len(self.body.encode("utf-8"))

    def is_error(self) -> bool:
        """True if the server flagged this packet as a failed login."""
        return self.id < 0

    def to_bytes(self) -> bytes:
        """Encode the packet into its complete wire form."""
        if not INT32_MIN <= self.id <= INT32_MAX:
            raise ValueError(f"Packet id must fit in a signed 32-bit int, got {self.id}")
        body = self.body.encode("utf-8")
        header = HEADER.pack(LENGTH_OVERHEAD + len(body), self.id, self.type.wire_value)
        return header + body + TERMINATOR

    def serialize(self, sink: Sink) -> None:
        """Write the packet to ``sink`` in one ``write`` call."""
        serialize(self, sink)

    def __repr__(self) -> str:
        kind = self.type.name if isinstance(self.type, PacketType) else repr(self.type)
        return f"Packet(id={self.id}, type={kind}, body={self.body!r})"


def serialize(packet: Packet, sink: Sink) -> None:
    """Encode ``packet`` and write it to ``sink``.

    The whole packet is assembled in memory first and handed to the sink
    in a single write; some servers fail to parse a request that arrives
    split across several TCP segments.

    Raises:
        RconIOError: If the sink cannot accept the bytes.
    """
    data = packet.to_bytes()
    try:
        sink.write(data)
    except RconIOError:
        raise
    except OSError as e:
        raise RconIOError(f"Failed to write packet {packet.id}: {e}") from e


def _read_exact(source: Source, size: int) -> bytes:
    """Read exactly ``size`` bytes, looping over short reads."""
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        try:
            chunk = source.read(remaining)
        except RconIOError:
            raise
        except OSError as e:
            raise RconIOError(f"Read failed: {e}") from e
        if not chunk:
            raise RconIOError(
                f"Stream closed mid-packet ({size - remaining} of {size} bytes read)"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def deserialize(source: Source, direction: Direction = Direction.RESPONSE) -> Packet:
    """Read one packet from ``source``.

    The type is decoded in response context unless ``direction`` says
    otherwise. Servers never send requests, so the session always reads
    with the default.

    Raises:
        RconIOError: If the stream ends before the packet is complete.
        DecodeError: If the length field is impossible or the body is not
            valid UTF-8.
    """
    length, packet_id, raw_type = HEADER.unpack(_read_exact(source, HEADER_SIZE))
    if length < LENGTH_OVERHEAD:
        raise DecodeError(f"Packet length {length} is smaller than the minimum {LENGTH_OVERHEAD}")

    body_bytes = _read_exact(source, length - LENGTH_OVERHEAD)
    try:
        body = body_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Packet {packet_id} body is not valid UTF-8: {e}") from e

    # terminating nulls
    _read_exact(source, len(TERMINATOR))

    return Packet(
        id=packet_id,
        type=packet_type_from_wire(raw_type, direction),
        body=body,
    )


def is_error(packet: Packet) -> bool:
    """True iff the packet id is negative (rejected authentication)."""
    return packet.is_error()
