"""Live endpoint message protocol definitions.

Defines Pydantic models for outbound messages and decoding helpers for
inbound frames. Messages are JSON objects sent over text WebSocket frames;
field names on the wire are camelCase.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from live_client.errors import ProtocolDecodeError
from live_client.media import (
    AUDIO_INPUT_MIME_TYPE,
    VIDEO_MIME_TYPE,
    decode_payload,
    encode_payload,
    is_pcm_audio,
)


class WireModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        """Serialize to the JSON text sent on the wire."""
        return self.model_dump_json(by_alias=True)


class TextPart(WireModel):
    text: str


class Content(WireModel):
    parts: list[TextPart]


class GenerationConfig(WireModel):
    response_modalities: list[str] = Field(default_factory=lambda: ["AUDIO"])


class AutomaticActivityDetection(WireModel):
    disabled: bool = False


class RealtimeInputConfig(WireModel):
    automatic_activity_detection: AutomaticActivityDetection = Field(
        default_factory=AutomaticActivityDetection
    )


class Setup(WireModel):
    """Session setup parameters."""

    model: str = Field(..., min_length=1, description="Model name")
    generation_config: GenerationConfig = Field(default_factory=GenerationConfig)
    system_instruction: Content
    realtime_input_config: RealtimeInputConfig = Field(
        default_factory=RealtimeInputConfig
    )


class SetupMessage(WireModel):
    """Client → Server: Setup handshake message.

    First message on a new connection. The server answers with setupComplete.
    """

    setup: Setup

    @classmethod
    def create(cls, model: str, system_instruction: str) -> "SetupMessage":
        return cls(
            setup=Setup(
                model=model,
                system_instruction=Content(parts=[TextPart(text=system_instruction)]),
            )
        )


class Blob(WireModel):
    mime_type: str
    data: str = Field(..., description="Base64-encoded payload")


class RealtimeInput(WireModel):
    audio: Blob | None = None
    video: Blob | None = None


class RealtimeInputMessage(WireModel):
    """Client → Server: Streamed media message.

    Carries exactly one audio chunk or one video frame.
    """

    realtime_input: RealtimeInput

    @classmethod
    def audio(cls, pcm: bytes) -> "RealtimeInputMessage":
        blob = Blob(mime_type=AUDIO_INPUT_MIME_TYPE, data=encode_payload(pcm))
        return cls(realtime_input=RealtimeInput(audio=blob))

    @classmethod
    def video(cls, jpeg: bytes) -> "RealtimeInputMessage":
        blob = Blob(mime_type=VIDEO_MIME_TYPE, data=encode_payload(jpeg))
        return cls(realtime_input=RealtimeInput(video=blob))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# Inbound frames


@dataclass
class SetupComplete:
    """Server → Client: Setup accepted, session ready."""


@dataclass
class GoAway:
    """Server → Client: Server will close the connection soon."""

    seconds: int = 0


@dataclass
class ServerContent:
    """Server → Client: Model output and turn lifecycle signals."""

    interrupted: bool = False
    audio_chunks: list[bytes] = field(default_factory=list)
    turn_complete: bool = False


ServerMessage = SetupComplete | GoAway | ServerContent


def decode_server_message(raw: str | bytes) -> ServerMessage | None:
    """Decode an inbound frame.

    Dispatches by top-level key, first match wins: setupComplete, goAway,
    serverContent. Frames without a recognized key decode to None.

    Args:
        raw: Frame payload (text or UTF-8 bytes)

    Returns:
        Decoded message or None if the frame carries nothing we handle

    Raises:
        ProtocolDecodeError: If the frame is not a UTF-8 JSON object
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolDecodeError(f"Invalid frame: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolDecodeError(f"Expected JSON object, got {type(data).__name__}")

    if "setupComplete" in data:
        return SetupComplete()

    if "goAway" in data:
        return GoAway(seconds=_time_left_seconds(data["goAway"]))

    server_content = data.get("serverContent")
    if isinstance(server_content, dict):
        return _decode_server_content(server_content)

    return None


def _time_left_seconds(go_away: Any) -> int:
    if not isinstance(go_away, dict):
        return 0
    time_left = go_away.get("timeLeft")
    if isinstance(time_left, dict):
        seconds = time_left.get("seconds", 0)
        if isinstance(seconds, int) and not isinstance(seconds, bool):
            return seconds
        if isinstance(seconds, str) and seconds.isdigit():
            return int(seconds)
    elif isinstance(time_left, str) and time_left.endswith("s"):
        # Duration in protobuf JSON form, e.g. "5s" or "4.5s"
        try:
            return int(float(time_left[:-1]))
        except ValueError:
            return 0
    return 0


def _decode_server_content(content: dict[str, Any]) -> ServerContent:
    if content.get("interrupted") is True:
        return ServerContent(interrupted=True)

    chunks: list[bytes] = []
    model_turn = content.get("modelTurn")
    parts = model_turn.get("parts") if isinstance(model_turn, dict) else None
    if isinstance(parts, list):
        for part in parts:
            inline = part.get("inlineData") if isinstance(part, dict) else None
            if not isinstance(inline, dict) or not is_pcm_audio(inline.get("mimeType")):
                continue
            data = inline.get("data")
            if not isinstance(data, str):
                continue
            try:
                chunks.append(decode_payload(data))
            except ValueError:
                continue

    return ServerContent(
        audio_chunks=chunks,
        turn_complete=content.get("turnComplete") is True,
    )
