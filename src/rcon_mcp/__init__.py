"""RCON client and MCP server for remote game-server consoles."""

from .connection import Connection, ConnectionBuilder, SessionState, connect
from .exceptions import (
    RconError,
    RconIOError,
    NotConnectedError,
    DecodeError,
    AuthenticationError,
    ProtocolError,
    CommandTooLongError,
)
from .protocol.quirks import Quirks
