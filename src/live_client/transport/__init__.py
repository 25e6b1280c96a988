"""Transport layer for the live connection.

Provides an abstraction over the socket so the protocol state machine can be
driven by any full-duplex message connection.
"""

from live_client.transport.base import NORMAL_CLOSURE, LiveTransport
from live_client.transport.websocket_transport import WebSocketTransport

__all__ = [
    "NORMAL_CLOSURE",
    "LiveTransport",
    "WebSocketTransport",
]
