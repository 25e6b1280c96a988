"""Live session supervision.

Owns one LiveService per session, wires its events to the audio device,
enforces the session time limit, and throttles outbound video frames.
UI-facing state (connection state, speaking flag, countdown, error message)
is mirrored from the service by push notification.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from live_client.audio import AudioBackend
from live_client.config import GeminiConfig
from live_client.credentials import CredentialStore
from live_client.errors import AudioDeviceError
from live_client.media import encode_jpeg
from live_client.service import LiveService
from live_client.state import ConnectionState

logger = logging.getLogger(__name__)


@dataclass
class SessionMetrics:
    """Session activity counters."""

    audio_chunks_sent: int = 0
    audio_chunks_received: int = 0
    video_frames_sent: int = 0
    video_frames_dropped: int = 0
    turns_completed: int = 0
    interruptions: int = 0

    session_start_ts: float = field(default_factory=time.monotonic)
    session_end_ts: float | None = None

    def finalize(self) -> None:
        """Mark session as complete and record end time."""
        if self.session_end_ts is None:
            self.session_end_ts = time.monotonic()

    def summary(self) -> dict[str, int | float]:
        """Get metrics summary for logging.

        Returns:
            Dictionary of metric names to values
        """
        return {
            "audio_chunks_sent": self.audio_chunks_sent,
            "audio_chunks_received": self.audio_chunks_received,
            "video_frames_sent": self.video_frames_sent,
            "video_frames_dropped": self.video_frames_dropped,
            "turns_completed": self.turns_completed,
            "interruptions": self.interruptions,
            "session_duration_s": (
                (self.session_end_ts or time.monotonic()) - self.session_start_ts
            ),
        }


class SessionSupervisor:
    """Runs one live session at a time.

    Observable attributes: is_active, connection_state, is_model_speaking,
    session_time_remaining, error_message, show_api_key_prompt. Assign
    on_change to be told when any of them may have changed.
    """

    def __init__(
        self,
        config: GeminiConfig,
        credentials: CredentialStore,
        audio: AudioBackend,
        service_factory: Callable[[], LiveService] | None = None,
        tick_interval_s: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize session supervisor.

        Args:
            config: Session configuration
            credentials: API key store
            audio: Audio capture/playback device
            service_factory: Builds a fresh LiveService for each session
            tick_interval_s: Countdown tick period (one second in production)
            clock: Monotonic clock used by the video throttle
        """
        self._config = config
        self._credentials = credentials
        self._audio = audio
        self._service_factory = service_factory or (
            lambda: LiveService(config, credentials=credentials)
        )
        self._tick_interval_s = tick_interval_s
        self._clock = clock

        self.is_active = False
        self.connection_state = ConnectionState.DISCONNECTED
        self.is_model_speaking = False
        self.session_time_remaining = config.session_duration_seconds
        self.error_message: str | None = None
        self.show_api_key_prompt = False
        self.on_change: Callable[[], None] | None = None
        self.metrics = SessionMetrics()

        self._service: LiveService | None = None
        self._timer_task: asyncio.Task[None] | None = None
        self._last_video_frame_ts: float | None = None
        self._starting = False
        self._startup_disconnect_reason: str | None = None

    @property
    def service(self) -> LiveService | None:
        return self._service

    @property
    def timer_display(self) -> str:
        minutes, seconds = divmod(self.session_time_remaining, 60)
        return f"{minutes}:{seconds:02d}"

    async def start_session(self) -> None:
        """Start a session: acquire audio, connect, start capture and countdown.

        Failures are reported through error_message; the session is left
        inactive.
        """
        if self.is_active:
            logger.warning("Session already active, ignoring start")
            return

        if not self._credentials.get():
            self.show_api_key_prompt = True
            self._notify()
            return

        self.is_active = True
        self.error_message = None
        self.session_time_remaining = self._config.session_duration_seconds
        self.metrics = SessionMetrics()
        self._last_video_frame_ts = None
        self._startup_disconnect_reason = None

        service = self._service_factory()
        self._service = service
        self._wire(service)
        self._notify()

        try:
            self._audio.setup()
        except AudioDeviceError as e:
            logger.error("Audio setup failed", extra={"error": str(e)})
            self._fail(f"Audio setup failed: {e}")
            return

        self._starting = True
        try:
            setup_ok = await service.connect()
        finally:
            self._starting = False

        if service is not self._service or not self.is_active:
            # stop_session() ran while connecting
            return

        # The socket may have dropped between setupComplete and connect() returning
        if not setup_ok or not service.connection_state.is_ready:
            message = service.connection_state.error_message
            if message is None and self._startup_disconnect_reason:
                message = f"Connection lost: {self._startup_disconnect_reason}"
            self._fail(message or "Failed to connect to Gemini")
            return

        try:
            self._audio.start_capture(self._handle_audio_captured)
        except AudioDeviceError as e:
            logger.error("Mic capture failed", extra={"error": str(e)})
            self._fail(f"Mic capture failed: {e}")
            return

        self._timer_task = asyncio.create_task(self._run_countdown())
        logger.info(
            "Session started",
            extra={"duration_s": self._config.session_duration_seconds},
        )

    def stop_session(self) -> None:
        """Tear the session down. Idempotent and safe from any state."""
        self._audio.stop_capture()
        self._audio.stop_playback()
        if self._service is not None:
            self._service.disconnect()

        timer, self._timer_task = self._timer_task, None
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

        was_active = self.is_active
        self.session_time_remaining = self._config.session_duration_seconds
        self.is_active = False
        self.connection_state = ConnectionState.DISCONNECTED
        self.is_model_speaking = False

        if was_active:
            self.metrics.finalize()
            logger.info("Session stopped", extra=self.metrics.summary())
        self._notify()

    def send_video_frame_if_throttled(self, frame: Any) -> bool:
        """Forward a video frame unless it arrives within the frame interval.

        Frames are dropped, never queued. Non-bytes frames (numpy arrays, PIL
        images) are JPEG-encoded after the throttle accepts them.

        Args:
            frame: JPEG bytes or an RGB image

        Returns:
            True if the frame was forwarded
        """
        if not self.is_active or not self.connection_state.is_ready or self._service is None:
            return False

        now = self._clock()
        if (
            self._last_video_frame_ts is not None
            and now - self._last_video_frame_ts < self._config.video_frame_interval_s
        ):
            self.metrics.video_frames_dropped += 1
            return False

        if isinstance(frame, (bytes, bytearray, memoryview)):
            jpeg = bytes(frame)
        else:
            try:
                jpeg = encode_jpeg(frame, self._config.video_jpeg_quality)
            except ValueError as e:
                logger.warning("Dropping unencodable video frame", extra={"error": str(e)})
                return False

        self._last_video_frame_ts = now

        sent = self._service.send_video_frame(jpeg)
        if sent:
            self.metrics.video_frames_sent += 1
        return sent

    def save_api_key(self, key: str) -> None:
        """Store a new API key and dismiss the key prompt."""
        self._credentials.set(key)
        self.show_api_key_prompt = False
        self._notify()

    async def wait_closed(self) -> None:
        """Wait for the current service's socket to finish closing."""
        if self._service is not None:
            await self._service.wait_closed()

    # Internals

    def _wire(self, service: LiveService) -> None:
        def on_audio_received(pcm: bytes) -> None:
            if service is self._service:
                self.metrics.audio_chunks_received += 1
                self._audio.play(pcm)

        def on_interrupted() -> None:
            if service is self._service:
                self.metrics.interruptions += 1
                self._audio.stop_playback()

        def on_turn_complete() -> None:
            if service is self._service:
                self.metrics.turns_completed += 1

        def on_disconnected(reason: str | None) -> None:
            if service is self._service:
                self._handle_disconnected(reason)

        def on_state_changed(state: ConnectionState, speaking: bool) -> None:
            if service is self._service and self.is_active:
                self.connection_state = state
                self.is_model_speaking = speaking
                self._notify()

        service.on_audio_received = on_audio_received
        service.on_interrupted = on_interrupted
        service.on_turn_complete = on_turn_complete
        service.on_disconnected = on_disconnected
        service.on_state_changed = on_state_changed

    def _handle_audio_captured(self, pcm: bytes) -> None:
        if self._service is not None and self._service.send_audio_chunk(pcm):
            self.metrics.audio_chunks_sent += 1

    def _handle_disconnected(self, reason: str | None) -> None:
        if self._starting:
            # Reported by start_session() once connect() returns
            self._startup_disconnect_reason = reason
            return

        if not self.is_active:
            return

        logger.warning("Connection lost", extra={"reason": reason})
        self._fail(f"Connection lost: {reason or 'Unknown error'}")

    def _fail(self, message: str) -> None:
        self.stop_session()
        self.error_message = message
        self._notify()

    async def _run_countdown(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval_s)
            if not self.is_active:
                return

            if self.session_time_remaining > 0:
                self.session_time_remaining -= 1
            self._notify()

            if self.session_time_remaining <= 0:
                logger.info("Session time limit reached")
                self._fail(
                    "Session time limit reached "
                    f"({_format_duration(self._config.session_duration_seconds)} "
                    "for audio+video)"
                )
                return

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change()
        except Exception:
            logger.exception("Session change handler failed")


def _format_duration(seconds: int) -> str:
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"
