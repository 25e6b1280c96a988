"""Error taxonomy for the live streaming client.

Each failure class maps to one escalation rule:

- ConfigurationError: missing/invalid credential or config, fatal to the attempt
- HandshakeTimeoutError: no setupComplete within the setup deadline
- TransportError: socket failure, fatal to the session (no reconnect)
- ProtocolDecodeError: malformed inbound frame, dropped silently
- AudioDeviceError: audio subsystem failure, session never becomes active
- RemoteServiceError: agent delegate returned non-2xx or a malformed body
"""


class LiveClientError(Exception):
    """Base class for all live client errors."""


class ConfigurationError(LiveClientError):
    """Raised when required configuration (e.g. the API key) is missing."""


class HandshakeTimeoutError(LiveClientError):
    """Raised when the server does not complete setup in time."""


class TransportError(LiveClientError, ConnectionError):
    """Raised when the underlying socket fails or is closed."""


class ProtocolDecodeError(LiveClientError, ValueError):
    """Raised when an inbound frame cannot be decoded."""


class AudioDeviceError(LiveClientError):
    """Raised when the audio device cannot be opened or started."""


class RemoteServiceError(LiveClientError):
    """Raised when the agent gateway answers with an unusable response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
