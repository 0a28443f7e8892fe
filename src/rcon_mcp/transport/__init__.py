"""Transport layer: byte streams the session reads and writes."""

from .tcp_stream import TCPStream, StreamInfo
