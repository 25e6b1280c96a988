"""Test doubles for the live transport and audio device.

FakeTransport lets a test script inbound frames and inspect outbound ones
without a network. FakeAudio records what the supervisor asked of the audio
device.
"""

import asyncio
import base64
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from live_client.errors import AudioDeviceError, TransportError
from live_client.transport.base import LiveTransport


class FakeTransport(LiveTransport):
    """In-memory transport driven by the test."""

    def __init__(self, fail_open: Exception | None = None, open_delay: float = 0.0) -> None:
        self.fail_open = fail_open
        self.open_delay = open_delay
        self.url: str | None = None
        self.sent: list[str] = []
        self.close_codes: list[int] = []
        self._inbound: asyncio.Queue[str | bytes | Exception | None] = asyncio.Queue()
        self._open = False

    @property
    def is_connected(self) -> bool:
        return self._open

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    async def open(self, url: str) -> None:
        self.url = url
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.fail_open is not None:
            raise TransportError(str(self.fail_open))
        self._open = True

    async def send(self, text: str) -> None:
        if not self._open:
            raise TransportError("closed")
        self.sent.append(text)

    async def receive(self) -> AsyncIterator[str | bytes]:
        while True:
            item = await self._inbound.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self, code: int = 1000) -> None:
        self.close_codes.append(code)
        self._open = False

    # Test controls

    def push(self, message: dict[str, Any] | str | bytes) -> None:
        """Queue an inbound frame."""
        if isinstance(message, dict):
            message = json.dumps(message)
        self._inbound.put_nowait(message)

    def push_error(self, error: Exception) -> None:
        """Make the receive loop fail with error."""
        self._inbound.put_nowait(error)

    def push_close(self) -> None:
        """End the inbound stream cleanly."""
        self._inbound.put_nowait(None)


class FakeAudio:
    """Audio backend double recording calls."""

    def __init__(
        self,
        fail_setup: bool = False,
        fail_capture: bool = False,
    ) -> None:
        self.fail_setup = fail_setup
        self.fail_capture = fail_capture
        self.setup_calls = 0
        self.capturing = False
        self.played: list[bytes] = []
        self.stop_playback_calls = 0
        self.stop_capture_calls = 0
        self.on_chunk: Callable[[bytes], None] | None = None

    def setup(self) -> None:
        self.setup_calls += 1
        if self.fail_setup:
            raise AudioDeviceError("no output device")

    def start_capture(self, on_chunk: Callable[[bytes], None]) -> None:
        if self.fail_capture:
            raise AudioDeviceError("microphone busy")
        self.on_chunk = on_chunk
        self.capturing = True

    def stop_capture(self) -> None:
        self.stop_capture_calls += 1
        self.capturing = False
        self.on_chunk = None

    def play(self, chunk: bytes) -> None:
        self.played.append(chunk)

    def stop_playback(self) -> None:
        self.stop_playback_calls += 1

    def close(self) -> None:
        self.stop_capture()
        self.stop_playback()

    def capture(self, chunk: bytes) -> None:
        """Simulate the microphone delivering a chunk."""
        if self.on_chunk is not None:
            self.on_chunk(chunk)


def audio_frame(pcm: bytes, mime_type: str = "audio/pcm;rate=24000") -> dict[str, Any]:
    """Build a serverContent frame carrying one audio part."""
    return {
        "serverContent": {
            "modelTurn": {
                "parts": [
                    {
                        "inlineData": {
                            "mimeType": mime_type,
                            "data": base64.b64encode(pcm).decode("ascii"),
                        }
                    }
                ]
            }
        }
    }


async def settle(iterations: int = 5) -> None:
    """Let background tasks run."""
    for _ in range(iterations):
        await asyncio.sleep(0)
