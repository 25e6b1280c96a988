"""Unit tests for the sounddevice audio backend.

No real device is opened; the stream callbacks are driven directly.
"""

import asyncio
import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from live_client.audio import SoundDeviceAudio
from live_client.errors import AudioDeviceError


class TestPlayback:
    """Test the playback buffer and output callback."""

    def test_callback_drains_buffer(self) -> None:
        audio = SoundDeviceAudio()
        audio.play(b"\x01\x00\x02\x00")
        audio.play(b"\x03\x00")

        outdata = bytearray(4)
        audio._playback_callback(outdata, 2, None, None)

        assert bytes(outdata) == b"\x01\x00\x02\x00"
        assert audio.buffered_playback_bytes == 2

    def test_callback_pads_silence(self) -> None:
        audio = SoundDeviceAudio()
        audio.play(b"\x07\x00")

        outdata = bytearray(6)
        audio._playback_callback(outdata, 3, None, None)

        assert bytes(outdata) == b"\x07\x00" + b"\x00" * 4

    def test_stop_playback_discards(self) -> None:
        audio = SoundDeviceAudio()
        audio.play(b"\x01" * 100)

        audio.stop_playback()

        assert audio.buffered_playback_bytes == 0


class TestCapture:
    """Test capture setup and thread handoff."""

    def test_capture_requires_setup(self) -> None:
        audio = SoundDeviceAudio()
        with pytest.raises(AudioDeviceError, match="not set up"):
            audio.start_capture(lambda chunk: None)

    @pytest.mark.asyncio
    async def test_setup_and_capture(self) -> None:
        """Test streams are opened with the configured format."""
        sd = MagicMock()
        audio = SoundDeviceAudio(input_sample_rate=16000, chunk_ms=100)
        received: list[bytes] = []

        with patch.dict(sys.modules, {"sounddevice": sd}):
            audio.setup()
            audio.start_capture(received.append)

        sd.RawOutputStream.assert_called_once()
        assert sd.RawOutputStream.call_args.kwargs["samplerate"] == 24000
        kwargs = sd.RawInputStream.call_args.kwargs
        assert kwargs["samplerate"] == 16000
        assert kwargs["blocksize"] == 1600
        assert kwargs["dtype"] == "int16"

        # Driver thread delivers a block
        block = np.arange(4, dtype=np.int16).tobytes()
        audio._capture_callback(block, 4, None, None)
        await asyncio.sleep(0)

        assert received == [block]

        audio.close()
        sd.RawInputStream.return_value.stop.assert_called_once()
        sd.RawOutputStream.return_value.stop.assert_called_once()

    def test_setup_device_error(self) -> None:
        sd = MagicMock()
        sd.check_input_settings.side_effect = ValueError("Invalid device")
        audio = SoundDeviceAudio()

        with patch.dict(sys.modules, {"sounddevice": sd}):
            with pytest.raises(AudioDeviceError, match="Invalid device"):
                audio.setup()

    @pytest.mark.asyncio
    async def test_callback_after_stop_ignored(self) -> None:
        sd = MagicMock()
        audio = SoundDeviceAudio()
        received: list[bytes] = []

        with patch.dict(sys.modules, {"sounddevice": sd}):
            audio.setup()
            audio.start_capture(received.append)
        audio.stop_capture()

        audio._capture_callback(b"\x00\x00", 1, None, None)
        await asyncio.sleep(0)

        assert received == []
