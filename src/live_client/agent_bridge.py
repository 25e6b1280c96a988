"""Agent gateway client for delegated tasks.

Sends a task to an OpenAI-compatible chat completions endpoint on the agent
gateway. A session key header keeps consecutive tasks in the same agent
conversation until reset_session() is called. Independent of the live
session.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import aiohttp

from live_client.config import OpenClawConfig
from live_client.errors import RemoteServiceError

logger = logging.getLogger(__name__)

SESSION_KEY_HEADER = "x-openclaw-session-key"
SESSION_KEY_PREFIX = "agent:main:glass:"
LOG_PREVIEW_CHARS = 200


class ToolCallPhase(Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ToolCallStatus:
    """Status of the most recent delegated task."""

    phase: ToolCallPhase = ToolCallPhase.IDLE
    name: str | None = None
    reason: str | None = None

    @classmethod
    def executing(cls, name: str) -> "ToolCallStatus":
        return cls(ToolCallPhase.EXECUTING, name)

    @classmethod
    def completed(cls, name: str) -> "ToolCallStatus":
        return cls(ToolCallPhase.COMPLETED, name)

    @classmethod
    def failed(cls, name: str, reason: str) -> "ToolCallStatus":
        return cls(ToolCallPhase.FAILED, name, reason)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a delegated task: reply text or a diagnostic."""

    success: bool
    content: str

    @classmethod
    def ok(cls, content: str) -> "ToolResult":
        return cls(True, content)

    @classmethod
    def failure(cls, message: str) -> "ToolResult":
        return cls(False, message)


def new_session_key() -> str:
    """Build a timestamp-derived session key."""
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"{SESSION_KEY_PREFIX}{timestamp}"


class AgentBridge:
    """Delegates tasks to the agent gateway over HTTP."""

    def __init__(
        self,
        config: OpenClawConfig,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize agent bridge.

        Args:
            config: Gateway configuration
            session: Optional shared HTTP session (created lazily otherwise)
        """
        self._config = config
        self._session = session
        self._owns_session = session is None
        self.session_key = new_session_key()
        self.last_tool_call_status = ToolCallStatus()

    def reset_session(self) -> None:
        """Start a new agent conversation."""
        self.session_key = new_session_key()
        logger.info("New agent session", extra={"session_key": self.session_key})

    async def close(self) -> None:
        """Close the HTTP session if this bridge created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def delegate_task(self, task: str, tool_name: str = "execute") -> ToolResult:
        """Send a task to the agent and wait for its reply.

        Args:
            task: Natural-language task for the agent
            tool_name: Name reported in the tool call status

        Returns:
            Success with the reply text, or failure with a diagnostic
        """
        self.last_tool_call_status = ToolCallStatus.executing(tool_name)

        headers = {
            "Authorization": f"Bearer {self._config.gateway_token}",
            "Content-Type": "application/json",
            SESSION_KEY_HEADER: self.session_key,
        }
        body = {
            "model": "openclaw",
            "messages": [{"role": "user", "content": task}],
            "stream": False,
        }

        try:
            content = await self._post(headers, body)
        except RemoteServiceError as e:
            reason = f"HTTP {e.status}" if e.status is not None else str(e)
            self.last_tool_call_status = ToolCallStatus.failed(tool_name, reason)
            return ToolResult.failure(str(e))
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error("Agent request failed", extra={"error": str(e)})
            self.last_tool_call_status = ToolCallStatus.failed(tool_name, str(e))
            return ToolResult.failure(f"Agent error: {e}")

        logger.info("Agent result", extra={"preview": content[:LOG_PREVIEW_CHARS]})
        self.last_tool_call_status = ToolCallStatus.completed(tool_name)
        return ToolResult.ok(content)

    async def _post(self, headers: dict[str, str], body: dict[str, Any]) -> str:
        session = self._get_session()
        async with session.post(
            self._config.chat_completions_url,
            headers=headers,
            data=json.dumps(body),
        ) as response:
            raw = await response.text()

            if not 200 <= response.status <= 299:
                logger.error(
                    "Agent chat failed",
                    extra={"status": response.status, "body": raw[:LOG_PREVIEW_CHARS]},
                )
                raise RemoteServiceError(
                    f"Agent returned HTTP {response.status}", status=response.status
                )

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Agent returned invalid JSON", extra={"error": str(e)})
            raise RemoteServiceError(f"Agent returned invalid JSON: {e}") from e

        content = extract_reply(data)
        if content is None:
            logger.info("Agent raw reply", extra={"preview": raw[:LOG_PREVIEW_CHARS]})
            return raw
        return content

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_s)
            )
            self._owns_session = True
        return self._session


def extract_reply(data: Any) -> str | None:
    """Read choices[0].message.content from a chat completion body."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None
