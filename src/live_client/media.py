"""Media payload utilities.

Handles base64 encoding/decoding of media payloads for JSON transport and
JPEG encoding of video frames.

Payload specification:
    - Outbound audio: 16-bit signed PCM, mono, 16kHz (``audio/pcm;rate=16000``)
    - Inbound audio: 16-bit signed PCM, mono, 24kHz (``audio/pcm;rate=24000``)
    - Outbound video: JPEG stills (``image/jpeg``)
"""

import base64
import binascii
import io
from typing import Any

import numpy as np
from PIL import Image

# MIME types
AUDIO_INPUT_MIME_TYPE: str = "audio/pcm;rate=16000"
AUDIO_PCM_MIME_PREFIX: str = "audio/pcm"
VIDEO_MIME_TYPE: str = "image/jpeg"


def encode_payload(data: bytes) -> str:
    """Encode raw bytes to a base64 string for JSON transport.

    Args:
        data: Raw media bytes

    Returns:
        Base64-encoded string
    """
    return base64.b64encode(data).decode("ascii")


def decode_payload(encoded: str) -> bytes:
    """Decode a base64 string from an inbound frame.

    Args:
        encoded: Base64-encoded payload

    Returns:
        Raw bytes

    Raises:
        ValueError: If the string is not valid base64
    """
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Failed to decode base64 payload: {e}") from e


def is_pcm_audio(mime_type: Any) -> bool:
    """Check whether a MIME type denotes raw PCM audio."""
    return isinstance(mime_type, str) and mime_type.startswith(AUDIO_PCM_MIME_PREFIX)


def encode_jpeg(image: "np.ndarray | Image.Image", quality: float) -> bytes:
    """Encode an image to JPEG bytes.

    Args:
        image: RGB numpy array (H, W, 3) uint8 or PIL image
        quality: Compression quality in (0, 1]

    Returns:
        JPEG-encoded bytes

    Raises:
        ValueError: If the image cannot be encoded
    """
    if isinstance(image, np.ndarray):
        if image.ndim not in (2, 3):
            raise ValueError(f"Expected 2D or 3D image array, got shape {image.shape}")
        image = Image.fromarray(image.astype(np.uint8))

    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    jpeg_quality = max(1, min(95, int(round(quality * 100))))
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=jpeg_quality)
    return buffer.getvalue()
