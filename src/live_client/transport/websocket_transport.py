"""WebSocket transport implementation.

Provides the live connection over the `websockets` asyncio client.
"""

import logging
from collections.abc import AsyncIterator

import websockets
from websockets.asyncio.client import ClientConnection, connect
from websockets.protocol import State

from live_client.errors import TransportError
from live_client.transport.base import NORMAL_CLOSURE, LiveTransport

logger = logging.getLogger(__name__)


class WebSocketTransport(LiveTransport):
    """WebSocket client connection to the live endpoint."""

    def __init__(
        self,
        open_timeout_s: float = 10.0,
        max_size: int = 2**24,
    ) -> None:
        """Initialize WebSocket transport.

        Args:
            open_timeout_s: Timeout for the opening handshake
            max_size: Maximum inbound message size in bytes
        """
        self._open_timeout_s = open_timeout_s
        self._max_size = max_size
        self._websocket: ClientConnection | None = None
        self._closed = False

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return (
            not self._closed
            and self._websocket is not None
            and self._websocket.state == State.OPEN
        )

    async def open(self, url: str) -> None:
        """Open the WebSocket connection.

        Args:
            url: Endpoint URL including credentials

        Raises:
            TransportError: If the connection cannot be established
        """
        if self._websocket is not None or self._closed:
            raise TransportError("WebSocket transport cannot be reopened")

        try:
            self._websocket = await connect(
                url,
                open_timeout=self._open_timeout_s,
                max_size=self._max_size,
            )
        except (OSError, TimeoutError, websockets.exceptions.WebSocketException) as e:
            logger.error("WebSocket connection failed", extra={"error": str(e)})
            raise TransportError(f"WebSocket connection failed: {e}") from e

        if self._closed:
            # close() was called while the handshake was in flight
            await self._websocket.close(code=NORMAL_CLOSURE)
            raise TransportError("WebSocket transport closed during open")

        logger.info("WebSocket connected")

    async def send(self, text: str) -> None:
        """Send one text frame.

        Args:
            text: JSON text to send

        Raises:
            TransportError: If the connection is closed or broken
        """
        if not self.is_connected or self._websocket is None:
            raise TransportError("WebSocket connection is closed")

        try:
            await self._websocket.send(text)
        except websockets.exceptions.ConnectionClosed as e:
            raise TransportError(f"WebSocket connection closed: {e}") from e

    async def receive(self) -> AsyncIterator[str | bytes]:
        """Receive frames until the connection closes.

        Yields:
            Raw frame payload

        Raises:
            TransportError: If the connection fails
        """
        if self._websocket is None:
            raise TransportError("WebSocket transport is not open")

        try:
            async for raw_message in self._websocket:
                yield raw_message
        except websockets.exceptions.ConnectionClosedOK:
            logger.info("WebSocket connection closed by server")
        except websockets.exceptions.ConnectionClosedError as e:
            raise TransportError(f"WebSocket connection lost: {e}") from e

    async def close(self, code: int = NORMAL_CLOSURE) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return

        self._closed = True
        if self._websocket is None:
            return

        try:
            await self._websocket.close(code=code)
        except Exception as e:
            logger.warning("Error during WebSocket close", extra={"error": str(e)})
        else:
            logger.info("WebSocket closed", extra={"code": code})
