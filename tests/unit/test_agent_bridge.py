"""Unit tests for the agent gateway bridge.

A fake aiohttp session captures the request and returns canned responses.
"""

import json
import re
from typing import Any
from unittest.mock import MagicMock

import aiohttp
import pytest
from live_client.agent_bridge import (
    SESSION_KEY_HEADER,
    AgentBridge,
    ToolCallPhase,
    ToolCallStatus,
    extract_reply,
    new_session_key,
)
from live_client.config import OpenClawConfig


class FakeResponse:
    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False


def make_session(status: int = 200, body: Any = None) -> MagicMock:
    if not isinstance(body, str):
        body = json.dumps(body)
    session = MagicMock()
    session.closed = False
    session.post = MagicMock(return_value=FakeResponse(status, body))
    return session


@pytest.fixture
def config() -> OpenClawConfig:
    return OpenClawConfig(host="http://gateway.local", port=18789, gateway_token="secret")


def completion(content: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestDelegateTask:
    """Test task delegation requests and results."""

    @pytest.mark.asyncio
    async def test_success(self, config: OpenClawConfig) -> None:
        session = make_session(body=completion("Done: 3 files renamed"))
        bridge = AgentBridge(config, session=session)

        result = await bridge.delegate_task("rename the files", tool_name="rename")

        assert result.success
        assert result.content == "Done: 3 files renamed"
        assert bridge.last_tool_call_status == ToolCallStatus.completed("rename")

    @pytest.mark.asyncio
    async def test_request_shape(self, config: OpenClawConfig) -> None:
        session = make_session(body=completion("ok"))
        bridge = AgentBridge(config, session=session)

        await bridge.delegate_task("check the weather")

        args, kwargs = session.post.call_args
        assert args[0] == "http://gateway.local:18789/v1/chat/completions"
        headers = kwargs["headers"]
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Content-Type"] == "application/json"
        assert headers[SESSION_KEY_HEADER] == bridge.session_key
        body = json.loads(kwargs["data"])
        assert body == {
            "model": "openclaw",
            "messages": [{"role": "user", "content": "check the weather"}],
            "stream": False,
        }

    @pytest.mark.asyncio
    async def test_http_error(self, config: OpenClawConfig) -> None:
        session = make_session(status=500, body="internal error")
        bridge = AgentBridge(config, session=session)

        result = await bridge.delegate_task("do it")

        assert not result.success
        assert result.content == "Agent returned HTTP 500"
        status = bridge.last_tool_call_status
        assert status.phase is ToolCallPhase.FAILED
        assert status.reason == "HTTP 500"

    @pytest.mark.asyncio
    async def test_invalid_json(self, config: OpenClawConfig) -> None:
        session = make_session(body="<html>oops</html>")
        bridge = AgentBridge(config, session=session)

        result = await bridge.delegate_task("do it")

        assert not result.success
        assert result.content.startswith("Agent returned invalid JSON")
        assert bridge.last_tool_call_status.phase is ToolCallPhase.FAILED

    @pytest.mark.asyncio
    async def test_no_choices_returns_raw_body(self, config: OpenClawConfig) -> None:
        raw = json.dumps({"result": "plain"})
        session = make_session(body=raw)
        bridge = AgentBridge(config, session=session)

        result = await bridge.delegate_task("do it")

        assert result.success
        assert result.content == raw

    @pytest.mark.asyncio
    async def test_transport_error(self, config: OpenClawConfig) -> None:
        session = make_session()
        session.post.side_effect = aiohttp.ClientConnectionError("connection refused")
        bridge = AgentBridge(config, session=session)

        result = await bridge.delegate_task("do it")

        assert not result.success
        assert result.content == "Agent error: connection refused"
        assert bridge.last_tool_call_status.phase is ToolCallPhase.FAILED

    @pytest.mark.asyncio
    async def test_status_executing_during_request(self, config: OpenClawConfig) -> None:
        bridge = AgentBridge(config)
        seen: list[ToolCallStatus] = []

        class RecordingResponse(FakeResponse):
            async def text(self) -> str:
                seen.append(bridge.last_tool_call_status)
                return await super().text()

        session = make_session()
        session.post.return_value = RecordingResponse(200, json.dumps(completion("ok")))
        bridge._session = session

        await bridge.delegate_task("do it")

        assert seen == [ToolCallStatus.executing("execute")]

    @pytest.mark.asyncio
    async def test_close_leaves_shared_session(self, config: OpenClawConfig) -> None:
        session = make_session()
        bridge = AgentBridge(config, session=session)

        await bridge.close()

        session.close.assert_not_called()


class TestSessionKey:
    def test_format(self) -> None:
        key = new_session_key()
        assert re.fullmatch(r"agent:main:glass:\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", key)

    def test_reset(self, config: OpenClawConfig) -> None:
        bridge = AgentBridge(config, session=MagicMock())
        bridge.session_key = "agent:main:glass:old"

        bridge.reset_session()

        assert bridge.session_key != "agent:main:glass:old"
        assert bridge.session_key.startswith("agent:main:glass:")


class TestExtractReply:
    @pytest.mark.parametrize(
        "data,expected",
        [
            (completion("hi"), "hi"),
            ({"choices": []}, None),
            ({"choices": [{"message": {"content": None}}]}, None),
            ({"other": 1}, None),
            ([1, 2], None),
        ],
    )
    def test_extract(self, data: Any, expected: str | None) -> None:
        assert extract_reply(data) == expected
