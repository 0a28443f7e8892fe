"""MCP server entry point for RCON game-server consoles.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import ServerSettings
from .connection import Connection
from .exceptions import RconError
from .protocol.quirks import DIALECTS, get_dialect

logger = logging.getLogger(__name__)

HISTORY_SIZE = 50

mcp = FastMCP(
    "rcon",
    instructions="MCP server for RCON remote consoles (Minecraft, Factorio, Source)",
)

# Global connection state
_connection: Connection | None = None
_connection_target: dict[str, Any] = {}
_connection_password: str | None = None
_settings: ServerSettings | None = None
_history: deque[dict[str, str]] = deque(maxlen=HISTORY_SIZE)
# A session reads packets in several steps; one exchange at a time
_lock = threading.Lock()


def _get_settings() -> ServerSettings:
    global _settings
    if _settings is None:
        _settings = ServerSettings.from_env()
    return _settings


def _get_connection() -> Connection:
    """Get the active RCON session, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to an RCON server. Use the 'connect' tool first."
        )
    return _connection


def _run(command: str) -> dict[str, Any]:
    """Run one command under the lock, dropping the session if it died."""
    global _connection
    conn = _get_connection()
    try:
        output = conn.cmd(command)
    except RconError as e:
        if not conn.connected:
            logger.warning("Session closed after error: %s", e)
            _connection = None
        return {"command": command, "error": str(e)}

    _history.append({"command": command, "response": output})
    return {"command": command, "response": output}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str | None = None,
    port: int | None = None,
    password: str | None = None,
    dialect: str | None = None,
) -> dict[str, Any]:
    """Connect and authenticate to an RCON server.

    Unset arguments fall back to RCON_HOST, RCON_PORT, RCON_PASSWORD and
    RCON_DIALECT.

    Args:
        host: Server hostname or IP.
        port: RCON port (Minecraft default 25575).
        password: RCON password.
        dialect: Quirk preset: baseline, minecraft, factorio or source.
    """
    global _connection, _connection_target, _connection_password
    settings = _get_settings()
    host = host or settings.host
    port = port or settings.port
    dialect = (dialect if dialect is not None else settings.dialect).strip().lower() or "baseline"
    password = password if password is not None else settings.password

    try:
        quirks = get_dialect(dialect)
    except ValueError as e:
        return {"error": str(e)}

    with _lock:
        if _connection is not None and _connection.connected:
            same_target = _connection_target == {"host": host, "port": port, "dialect": dialect}
            if same_target and password == _connection_password:
                return {"connected": True, "message": "Already connected", **_connection_target}
            _connection.close()
            _connection = None

        try:
            _connection = (
                Connection.builder()
                .quirks(quirks)
                .timeout(settings.timeout)
                .connect((host, port), password)
            )
        except RconError as e:
            _connection = None
            return {"connected": False, "error": str(e), "error_type": type(e).__name__}

        _connection_target = {"host": host, "port": port, "dialect": dialect}
        _connection_password = password

    return {
        "connected": True,
        "host": host,
        "port": port,
        "dialect": dialect,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the RCON session."""
    global _connection
    with _lock:
        if _connection is None:
            return {"disconnected": True}
        _connection.close()
        _connection = None
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report the session state and active quirks."""
    if _connection is None:
        return {"connected": False, "state": "closed"}
    return {
        "connected": _connection.connected,
        "state": _connection.state.value,
        "quirks": _connection.quirks.to_dict(),
        **_connection_target,
    }


# ─── COMMAND TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def run_command(command: str) -> dict[str, Any]:
    """Run a console command and return the server's full response.

    Args:
        command: Command text, e.g. "list" or "say hello".
    """
    if not command.strip():
        return {"error": "Command must not be empty"}
    with _lock:
        return _run(command)


@mcp.tool()
def run_commands(commands: list[str]) -> dict[str, Any]:
    """Run several commands in order, stopping at the first failure.

    Args:
        commands: Command texts to run one after another.
    """
    results = []
    with _lock:
        for command in commands:
            if not command.strip():
                results.append({"command": command, "error": "Command must not be empty"})
                break
            result = _run(command)
            results.append(result)
            if "error" in result:
                break
    return {"results": results, "completed": sum(1 for r in results if "error" not in r)}


@mcp.tool()
def list_dialects() -> dict[str, Any]:
    """List the quirk presets available to the connect tool."""
    return {"dialects": {name: quirks.to_dict() for name, quirks in DIALECTS.items()}}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("rcon://connection/status")
def resource_connection_status() -> str:
    """Connection state and target server."""
    return json.dumps(get_status())


@mcp.resource("rcon://dialects")
def resource_dialects() -> str:
    """Quirk presets with their settings."""
    return json.dumps(list_dialects())


@mcp.resource("rcon://history")
def resource_history() -> str:
    """Recent commands and their responses."""
    return json.dumps({"history": list(_history), "count": len(_history)})


# ─── PROMPTS ─────────────────────────────────────────────────────────

@mcp.prompt()
def server_health_check(game: str = "minecraft") -> str:
    """Check that a game server is up and responsive.

    Args:
        game: Which game the server runs (minecraft, factorio, source).
    """
    return f"""Connect to the {game} server with the connect tool (dialect "{game}").
Then use run_command to check:
- Who is online (e.g. "list" on Minecraft, "/players online" on Factorio, "status" on Source)
- Server version or seed if the game exposes it
- Any obvious errors in the responses

Summarize the server state and disconnect when done."""


@mcp.prompt()
def broadcast_message(message: str) -> str:
    """Announce a message to every player on the server.

    Args:
        message: Text to broadcast.
    """
    return f"""Broadcast this message to all players: {message!r}

Use get_status to confirm the session is connected, then run_command with the
game's broadcast command ("say <text>" on Minecraft and Source servers,
plain chat text on Factorio). Report the server's response."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    _get_settings()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
