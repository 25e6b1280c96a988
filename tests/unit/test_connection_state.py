"""Unit tests for connection state transitions."""

import pytest
from live_client.state import VALID_TRANSITIONS, ConnectionPhase, ConnectionState


class TestConnectionState:
    """Test ConnectionState values."""

    def test_constants(self) -> None:
        assert ConnectionState.DISCONNECTED.phase is ConnectionPhase.DISCONNECTED
        assert ConnectionState.READY.is_ready
        assert not ConnectionState.SETTING_UP.is_ready

    def test_error_carries_message(self) -> None:
        state = ConnectionState.error("Setup timed out")

        assert state.phase is ConnectionPhase.ERROR
        assert state.error_message == "Setup timed out"
        assert str(state) == "error(Setup timed out)"

    def test_error_message_only_for_error(self) -> None:
        assert ConnectionState.READY.error_message is None
        assert str(ConnectionState.SETTING_UP) == "setting_up"

    def test_equality(self) -> None:
        assert ConnectionState.error("a") == ConnectionState.error("a")
        assert ConnectionState.error("a") != ConnectionState.error("b")


class TestTransitions:
    """Test the transition table."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (ConnectionState.DISCONNECTED, ConnectionPhase.CONNECTING),
            (ConnectionState.CONNECTING, ConnectionPhase.SETTING_UP),
            (ConnectionState.CONNECTING, ConnectionPhase.ERROR),
            (ConnectionState.SETTING_UP, ConnectionPhase.READY),
            (ConnectionState.SETTING_UP, ConnectionPhase.ERROR),
            (ConnectionState.error("x"), ConnectionPhase.CONNECTING),
        ],
    )
    def test_valid(self, current: ConnectionState, target: ConnectionPhase) -> None:
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (ConnectionState.DISCONNECTED, ConnectionPhase.READY),
            (ConnectionState.CONNECTING, ConnectionPhase.READY),
            (ConnectionState.READY, ConnectionPhase.CONNECTING),
            (ConnectionState.READY, ConnectionPhase.SETTING_UP),
        ],
    )
    def test_invalid(self, current: ConnectionState, target: ConnectionPhase) -> None:
        assert not current.can_transition_to(target)

    def test_disconnect_always_allowed(self) -> None:
        for phase in VALID_TRANSITIONS:
            assert ConnectionState(phase).can_transition_to(ConnectionPhase.DISCONNECTED)
