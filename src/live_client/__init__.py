"""Real-time streaming client for a generative-AI live endpoint.

Streams microphone audio and camera frames to the endpoint over a WebSocket
and plays back streamed model audio, under a time-limited session.
"""

from live_client.agent_bridge import AgentBridge, ToolCallStatus, ToolResult
from live_client.config import GeminiConfig, LiveClientConfig, OpenClawConfig
from live_client.service import LiveService
from live_client.session import SessionSupervisor
from live_client.state import ConnectionPhase, ConnectionState

__all__ = [
    "AgentBridge",
    "ConnectionPhase",
    "ConnectionState",
    "GeminiConfig",
    "LiveClientConfig",
    "LiveService",
    "OpenClawConfig",
    "SessionSupervisor",
    "ToolCallStatus",
    "ToolResult",
]
