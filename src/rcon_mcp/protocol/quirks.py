"""Per-dialect deviations from the baseline RCON protocol.

Each field of :class:`Quirks` is one named deviation, consulted at a fixed
point of the login or command exchange. The defaults describe the strict
baseline protocol; dialect presets only switch fields on.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Optional

# Longest command body a Minecraft server accepts
MINECRAFT_MAX_PAYLOAD_SIZE = 1413
# Minecraft drops packets that arrive too quickly after a command
MINECRAFT_COMMAND_DELAY = 0.003


@dataclass(frozen=True)
class Quirks:
    """Immutable set of tolerated protocol deviations."""

    # False: read a single response packet, no end-marker round-trip
    multi_packet_responses: bool = True
    # Source servers send an empty ResponseValue ahead of the AuthResponse
    skip_packets_before_auth_response: bool = False
    # False: accept an auth reply whose (non-negative) id differs from ours
    require_matching_auth_id: bool = True
    max_command_length: Optional[int] = None
    command_delay: float = 0.0

    def merge(self, other: Quirks) -> Quirks:
        """Combine two quirk sets, keeping every deviation either enables."""
        limits = [n for n in (self.max_command_length, other.max_command_length) if n is not None]
        return Quirks(
            multi_packet_responses=self.multi_packet_responses and other.multi_packet_responses,
            skip_packets_before_auth_response=(
                self.skip_packets_before_auth_response or other.skip_packets_before_auth_response
            ),
            require_matching_auth_id=self.require_matching_auth_id and other.require_matching_auth_id,
            max_command_length=min(limits) if limits else None,
            command_delay=max(self.command_delay, other.command_delay),
        )

    def is_baseline(self) -> bool:
        return self == BASELINE

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


BASELINE = Quirks()

MINECRAFT = Quirks(
    max_command_length=MINECRAFT_MAX_PAYLOAD_SIZE,
    command_delay=MINECRAFT_COMMAND_DELAY,
)

# Factorio never answers the empty end-marker in a distinguishable way
FACTORIO = Quirks(multi_packet_responses=False)

SOURCE = Quirks(skip_packets_before_auth_response=True)

DIALECTS: dict[str, Quirks] = {
    "baseline": BASELINE,
    "minecraft": MINECRAFT,
    "factorio": FACTORIO,
    "source": SOURCE,
}


def get_dialect(name: str) -> Quirks:
    """Look up a dialect preset by name (case-insensitive).

    Args:
        name: One of ``baseline``, ``minecraft``, ``factorio``, ``source``.
            An empty string means ``baseline``.
    """
    key = name.strip().lower() or "baseline"
    if key not in DIALECTS:
        raise ValueError(f"Unknown dialect '{name}'. Valid: {list(DIALECTS)}")
    return DIALECTS[key]
