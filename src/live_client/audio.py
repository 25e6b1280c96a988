"""Audio device collaborator.

Captures microphone PCM and plays model audio. Capture callbacks arrive on
the audio driver's thread and are delivered on the event loop that started
capture.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from live_client.errors import AudioDeviceError

logger = logging.getLogger(__name__)

BYTES_PER_SAMPLE = 2


class AudioBackend(ABC):
    """Microphone capture and speaker playback used by a live session."""

    @abstractmethod
    def setup(self) -> None:
        """Acquire the audio device.

        Raises:
            AudioDeviceError: If the device cannot be opened
        """
        pass

    @abstractmethod
    def start_capture(self, on_chunk: Callable[[bytes], None]) -> None:
        """Start delivering captured PCM chunks to on_chunk.

        Raises:
            AudioDeviceError: If capture cannot be started
        """
        pass

    @abstractmethod
    def stop_capture(self) -> None:
        """Stop capture. Safe to call when not capturing."""
        pass

    @abstractmethod
    def play(self, chunk: bytes) -> None:
        """Queue a PCM chunk for playback."""
        pass

    @abstractmethod
    def stop_playback(self) -> None:
        """Discard queued playback audio."""
        pass

    def close(self) -> None:
        """Release the device."""
        self.stop_capture()
        self.stop_playback()


class SoundDeviceAudio(AudioBackend):
    """Audio backend built on sounddevice raw streams.

    Capture: 16-bit mono PCM at the input rate, delivered in chunk_ms blocks.
    Playback: 16-bit mono PCM at the output rate, pulled from a byte buffer.
    """

    def __init__(
        self,
        input_sample_rate: int = 16000,
        output_sample_rate: int = 24000,
        chunk_ms: int = 100,
        input_device: str | int | None = None,
        output_device: str | int | None = None,
    ) -> None:
        """Initialize sounddevice backend.

        Args:
            input_sample_rate: Capture sample rate in Hz
            output_sample_rate: Playback sample rate in Hz
            chunk_ms: Capture block duration in milliseconds
            input_device: Optional input device name/index
            output_device: Optional output device name/index
        """
        self.input_sample_rate = input_sample_rate
        self.output_sample_rate = output_sample_rate
        self.chunk_ms = chunk_ms
        self.input_device = input_device
        self.output_device = output_device

        self._sd: Any = None
        self._input_stream: Any = None
        self._output_stream: Any = None
        self._playback_buffer = bytearray()
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_chunk: Callable[[bytes], None] | None = None

    def setup(self) -> None:
        """Open the output stream and validate input settings."""
        if self._output_stream is not None:
            return

        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise AudioDeviceError(f"sounddevice unavailable: {e}") from e

        self._sd = sd
        try:
            sd.check_input_settings(
                device=self.input_device,
                channels=1,
                dtype="int16",
                samplerate=self.input_sample_rate,
            )
            self._output_stream = sd.RawOutputStream(
                samplerate=self.output_sample_rate,
                channels=1,
                dtype="int16",
                device=self.output_device,
                callback=self._playback_callback,
            )
            self._output_stream.start()
        except Exception as e:
            self._output_stream = None
            raise AudioDeviceError(str(e)) from e

        logger.info(
            "Audio output initialized",
            extra={"device": self.output_device or "default", "rate": self.output_sample_rate},
        )

    def start_capture(self, on_chunk: Callable[[bytes], None]) -> None:
        """Start microphone capture on the running event loop."""
        if self._sd is None:
            raise AudioDeviceError("Audio device not set up")
        if self._input_stream is not None:
            return

        self._loop = asyncio.get_running_loop()
        self._on_chunk = on_chunk
        blocksize = self.input_sample_rate * self.chunk_ms // 1000

        try:
            self._input_stream = self._sd.RawInputStream(
                samplerate=self.input_sample_rate,
                blocksize=blocksize,
                channels=1,
                dtype="int16",
                device=self.input_device,
                callback=self._capture_callback,
            )
            self._input_stream.start()
        except Exception as e:
            self._input_stream = None
            raise AudioDeviceError(str(e)) from e

        logger.info("Mic capture started", extra={"rate": self.input_sample_rate})

    def stop_capture(self) -> None:
        stream, self._input_stream = self._input_stream, None
        self._on_chunk = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning("Error stopping capture", extra={"error": str(e)})

    def play(self, chunk: bytes) -> None:
        with self._lock:
            self._playback_buffer.extend(chunk)

    def stop_playback(self) -> None:
        with self._lock:
            self._playback_buffer.clear()

    def close(self) -> None:
        super().close()
        stream, self._output_stream = self._output_stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning("Error closing audio output", extra={"error": str(e)})

    @property
    def buffered_playback_bytes(self) -> int:
        with self._lock:
            return len(self._playback_buffer)

    def _capture_callback(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Capture status", extra={"status": str(status)})

        on_chunk, loop = self._on_chunk, self._loop
        if on_chunk is None or loop is None:
            return
        try:
            loop.call_soon_threadsafe(on_chunk, bytes(indata))
        except RuntimeError:
            logger.debug("Event loop closed, dropping captured chunk")

    def _playback_callback(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        needed = frames * BYTES_PER_SAMPLE
        with self._lock:
            data = bytes(self._playback_buffer[:needed])
            del self._playback_buffer[:needed]

        if len(data) < needed:
            data += b"\x00" * (needed - len(data))
        outdata[:] = data
