"""Connection state for the live protocol.

State Transitions:
- DISCONNECTED → CONNECTING (connect() with an API key)
- DISCONNECTED → ERROR (connect() without an API key)
- CONNECTING → SETTING_UP (socket open, setup message queued)
- CONNECTING → ERROR (socket could not be opened)
- SETTING_UP → READY (setupComplete received)
- SETTING_UP → ERROR (setup timed out)
- SETTING_UP/READY → DISCONNECTED (receive error, goAway, disconnect())
- ERROR → CONNECTING (new connect() attempt)
- * → DISCONNECTED (disconnect() is always allowed)
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class ConnectionPhase(Enum):
    """Connection lifecycle phases."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SETTING_UP = "setting_up"
    READY = "ready"
    ERROR = "error"


# Valid transitions, excluding the forced move to DISCONNECTED
VALID_TRANSITIONS: dict[ConnectionPhase, set[ConnectionPhase]] = {
    ConnectionPhase.DISCONNECTED: {ConnectionPhase.CONNECTING, ConnectionPhase.ERROR},
    ConnectionPhase.CONNECTING: {ConnectionPhase.SETTING_UP, ConnectionPhase.ERROR},
    ConnectionPhase.SETTING_UP: {ConnectionPhase.READY, ConnectionPhase.ERROR},
    ConnectionPhase.READY: set(),
    ConnectionPhase.ERROR: {ConnectionPhase.CONNECTING, ConnectionPhase.ERROR},
}


@dataclass(frozen=True)
class ConnectionState:
    """Current connection phase plus the error message for ERROR."""

    phase: ConnectionPhase
    message: str | None = None

    DISCONNECTED: ClassVar["ConnectionState"]
    CONNECTING: ClassVar["ConnectionState"]
    SETTING_UP: ClassVar["ConnectionState"]
    READY: ClassVar["ConnectionState"]

    @classmethod
    def error(cls, message: str) -> "ConnectionState":
        return cls(ConnectionPhase.ERROR, message)

    @property
    def is_ready(self) -> bool:
        return self.phase is ConnectionPhase.READY

    @property
    def error_message(self) -> str | None:
        return self.message if self.phase is ConnectionPhase.ERROR else None

    def can_transition_to(self, new_phase: ConnectionPhase) -> bool:
        if new_phase is ConnectionPhase.DISCONNECTED:
            return True
        return new_phase in VALID_TRANSITIONS.get(self.phase, set())

    def __str__(self) -> str:
        if self.phase is ConnectionPhase.ERROR:
            return f"error({self.message})"
        return self.phase.value


ConnectionState.DISCONNECTED = ConnectionState(ConnectionPhase.DISCONNECTED)
ConnectionState.CONNECTING = ConnectionState(ConnectionPhase.CONNECTING)
ConnectionState.SETTING_UP = ConnectionState(ConnectionPhase.SETTING_UP)
ConnectionState.READY = ConnectionState(ConnectionPhase.READY)
