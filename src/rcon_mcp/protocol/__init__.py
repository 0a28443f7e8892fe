"""Protocol layer: packet codec and per-dialect quirk configuration."""

from .packet import Packet, PacketType, UnknownType, Direction, serialize, deserialize, is_error
from .quirks import Quirks, get_dialect
