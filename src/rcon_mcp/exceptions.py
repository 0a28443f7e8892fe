"""Error kinds raised by the codec and the session.

Each kind also derives from the builtin exception it corresponds to, so
code that already catches ``ConnectionError`` or ``ValueError`` keeps
working.
"""

from __future__ import annotations


class RconError(Exception):
    """Base class for all RCON errors."""


class RconIOError(RconError, ConnectionError):
    """Stream-level failure: refused, reset, timed out or closed mid-packet."""


class NotConnectedError(RconError, ConnectionError):
    """A command was issued on a session that is not authenticated."""


class DecodeError(RconError, ValueError):
    """A packet could not be decoded (bad header or non UTF-8 body)."""


class AuthenticationError(RconError, PermissionError):
    """The server rejected the password (negative id on the auth reply)."""


class ProtocolError(RconError):
    """A response id matched no outstanding request."""


class CommandTooLongError(RconError, ValueError):
    """The command exceeds the dialect's maximum payload size."""
