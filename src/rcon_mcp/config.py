"""Server defaults read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .protocol.quirks import get_dialect
from .transport.tcp_stream import DEFAULT_PORT, DEFAULT_TIMEOUT


@dataclass(frozen=True)
class ServerSettings:
    """Connection defaults for the MCP server.

    Environment variables:
        RCON_HOST: Server host (default ``127.0.0.1``).
        RCON_PORT: Server port (default 25575).
        RCON_PASSWORD: RCON password (default empty).
        RCON_DIALECT: Quirk preset name (default baseline).
        RCON_TIMEOUT: Socket timeout in seconds; 0 disables it (default 10).
    """

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    password: str = ""
    dialect: str = ""
    timeout: Optional[float] = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ServerSettings:
        env = os.environ if environ is None else environ

        port_text = env.get("RCON_PORT", str(DEFAULT_PORT))
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"RCON_PORT must be an integer, got {port_text!r}") from None
        if not 0 < port < 65536:
            raise ValueError(f"RCON_PORT must be 1-65535, got {port}")

        timeout_text = env.get("RCON_TIMEOUT", str(DEFAULT_TIMEOUT))
        try:
            timeout = float(timeout_text)
        except ValueError:
            raise ValueError(f"RCON_TIMEOUT must be a number, got {timeout_text!r}") from None

        dialect = env.get("RCON_DIALECT", "")
        # Fail at startup rather than on the first connect
        get_dialect(dialect)

        return cls(
            host=env.get("RCON_HOST", "127.0.0.1"),
            port=port,
            password=env.get("RCON_PASSWORD", ""),
            dialect=dialect,
            timeout=timeout if timeout > 0 else None,
        )
