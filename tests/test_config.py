"""Tests for environment-driven server settings."""

import pytest

from rcon_mcp.config import ServerSettings


def test_defaults():
    """An empty environment gives the baseline defaults."""
    s = ServerSettings.from_env({})
    assert s.host == "127.0.0.1"
    assert s.port == 25575
    assert s.password == ""
    assert s.dialect == ""
    assert s.timeout == 10.0


def test_from_env_values():
    """Every variable is read."""
    s = ServerSettings.from_env({
        "RCON_HOST": "factorio.lan",
        "RCON_PORT": "27015",
        "RCON_PASSWORD": "pw",
        "RCON_DIALECT": "factorio",
        "RCON_TIMEOUT": "2.5",
    })
    assert s == ServerSettings("factorio.lan", 27015, "pw", "factorio", 2.5)


def test_zero_timeout_disables():
    """RCON_TIMEOUT=0 means no socket timeout."""
    assert ServerSettings.from_env({"RCON_TIMEOUT": "0"}).timeout is None


def test_invalid_port():
    """Non-numeric or out-of-range ports name the variable."""
    with pytest.raises(ValueError, match="RCON_PORT"):
        ServerSettings.from_env({"RCON_PORT": "abc"})
    with pytest.raises(ValueError, match="RCON_PORT"):
        ServerSettings.from_env({"RCON_PORT": "70000"})


def test_invalid_timeout():
    """A non-numeric timeout names the variable."""
    with pytest.raises(ValueError, match="RCON_TIMEOUT"):
        ServerSettings.from_env({"RCON_TIMEOUT": "soon"})


def test_unknown_dialect():
    """Unknown dialect names fail at load time."""
    with pytest.raises(ValueError, match="Unknown dialect"):
        ServerSettings.from_env({"RCON_DIALECT": "quake"})
