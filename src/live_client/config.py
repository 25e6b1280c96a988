"""Configuration schema for the live client.

Defines Pydantic models for loading and validating client configuration
from YAML files and environment variables.
"""

import os
from pathlib import Path
from urllib.parse import urlencode

from pydantic import BaseModel, Field, field_validator

DEFAULT_LIVE_URL = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a helpful assistant that can see through the user's camera and "
    "hear their voice. Keep answers short and conversational."
)


class GeminiConfig(BaseModel):
    """Live endpoint and session configuration."""

    api_key: str = Field(default="", description="API key for the live endpoint")
    websocket_url: str = Field(
        default=DEFAULT_LIVE_URL,
        description="Base WebSocket URL of the live endpoint (key appended as query)",
    )
    model: str = Field(
        default="models/gemini-2.5-flash-native-audio-preview-09-2025",
        description="Model name sent in the setup message",
    )
    system_instruction: str = Field(
        default=DEFAULT_SYSTEM_INSTRUCTION,
        description="System instruction text sent in the setup message",
    )
    setup_timeout_s: float = Field(
        default=15.0,
        gt=0,
        le=120.0,
        description="Seconds to wait for setupComplete before failing",
    )
    session_duration_seconds: int = Field(
        default=120,
        ge=1,
        le=3600,
        description="Hard session time limit in seconds",
    )
    video_frame_interval_s: float = Field(
        default=1.0,
        gt=0,
        description="Minimum interval between outbound video frames",
    )
    video_jpeg_quality: float = Field(
        default=0.5,
        gt=0,
        le=1.0,
        description="JPEG compression quality for video frames (0-1]",
    )
    input_sample_rate: int = Field(
        default=16000, description="Microphone capture sample rate in Hz"
    )
    output_sample_rate: int = Field(
        default=24000, description="Playback sample rate in Hz"
    )

    @field_validator("websocket_url")
    @classmethod
    def validate_websocket_url(cls, v: str) -> str:
        """Validate that the endpoint uses a WebSocket scheme."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError(f"websocket_url must start with ws:// or wss://, got '{v}'")
        return v

    @field_validator("input_sample_rate", "output_sample_rate")
    @classmethod
    def validate_sample_rate(cls, v: int) -> int:
        """Validate that sample rate is one the endpoint accepts."""
        valid_rates = [8000, 16000, 24000, 48000]
        if v not in valid_rates:
            raise ValueError(f"sample rate must be one of {valid_rates}, got {v}")
        return v

    def endpoint_url(self, api_key: str | None = None) -> str | None:
        """Build the WebSocket URL, or None when no API key is available.

        Args:
            api_key: Key to use instead of the configured one

        Returns:
            Full endpoint URL with the key query parameter, or None
        """
        key = self.api_key if api_key is None else api_key
        if not key.strip():
            return None
        return f"{self.websocket_url}?{urlencode({'key': key.strip()})}"


class OpenClawConfig(BaseModel):
    """Agent gateway configuration for delegated tasks."""

    host: str = Field(default="http://localhost", description="Gateway base URL")
    port: int = Field(default=18789, ge=1, le=65535, description="Gateway port")
    gateway_token: str = Field(default="", description="Bearer token for the gateway")
    request_timeout_s: float = Field(
        default=120.0, gt=0, description="HTTP request timeout in seconds"
    )

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Validate that the host carries an HTTP scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"host must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @property
    def chat_completions_url(self) -> str:
        """Full URL of the chat completions endpoint."""
        return f"{self.host}:{self.port}/v1/chat/completions"


class LiveClientConfig(BaseModel):
    """Root client configuration."""

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    openclaw: OpenClawConfig = Field(default_factory=OpenClawConfig)

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    credentials_path: Path | None = Field(
        default=None,
        description="Optional file used to persist the API key",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level name."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @field_validator("credentials_path")
    @classmethod
    def expand_credentials_path(cls, v: Path | None) -> Path | None:
        """Expand a leading ~ in the credentials path."""
        return v.expanduser() if v is not None else None

    @classmethod
    def from_yaml(cls, path: Path) -> "LiveClientConfig":
        """Load configuration from YAML file with environment variable overrides.

        Args:
            path: Path to YAML configuration file

        Returns:
            Loaded configuration

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        import yaml  # type: ignore[import-untyped]

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls.model_validate(apply_env_overrides(data))

    @classmethod
    def from_yaml_with_defaults(cls, path: Path | None = None) -> "LiveClientConfig":
        """Load configuration from YAML or use defaults if file doesn't exist.

        Environment overrides apply in both cases.

        Args:
            path: Optional path to YAML configuration file

        Returns:
            Loaded configuration or defaults
        """
        if path is not None and path.exists():
            return cls.from_yaml(path)

        return cls.model_validate(apply_env_overrides({}))


def apply_env_overrides(data: dict) -> dict:
    """Overlay environment variables onto raw configuration data.

    Args:
        data: Parsed YAML mapping (modified in place)

    Returns:
        The same mapping with overrides applied
    """
    gemini = data.setdefault("gemini", {})
    openclaw = data.setdefault("openclaw", {})

    if api_key := os.getenv("GEMINI_API_KEY"):
        gemini["api_key"] = api_key

    if model := os.getenv("GEMINI_MODEL"):
        gemini["model"] = model

    if host := os.getenv("OPENCLAW_HOST"):
        openclaw["host"] = host

    if port := os.getenv("OPENCLAW_PORT"):
        openclaw["port"] = int(port)

    if token := os.getenv("OPENCLAW_GATEWAY_TOKEN"):
        openclaw["gateway_token"] = token

    if log_level := os.getenv("LOG_LEVEL"):
        data["log_level"] = log_level

    return data
