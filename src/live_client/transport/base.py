"""Base transport abstraction for the live connection.

Defines the interface a full-duplex, message-oriented connection must
implement so the protocol state machine can run over it.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

NORMAL_CLOSURE = 1000


class LiveTransport(ABC):
    """One full-duplex message connection to the live endpoint.

    A transport is opened once and closed once; it is never reopened.
    """

    @abstractmethod
    async def open(self, url: str) -> None:
        """Open the connection.

        Args:
            url: Endpoint URL including credentials

        Raises:
            TransportError: If the connection cannot be established
        """
        pass

    @abstractmethod
    async def send(self, text: str) -> None:
        """Send one text frame.

        Args:
            text: JSON text to send

        Raises:
            TransportError: If the connection is closed or broken
        """
        pass

    @abstractmethod
    async def receive(self) -> AsyncIterator[str | bytes]:
        """Receive frames until the connection closes.

        Ends normally when the peer closes the connection cleanly.

        Yields:
            Raw frame payload

        Raises:
            TransportError: If the connection fails
        """
        # Using yield to make this an async generator
        if False:
            yield ""

    @abstractmethod
    async def close(self, code: int = NORMAL_CLOSURE) -> None:
        """Close the connection. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        pass
