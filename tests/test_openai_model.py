"""
Tests for OpenAIModel
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sleuth.llm import OpenAIModel


@pytest.fixture
def mock_openai():
    with patch("sleuth.llm.openai.AsyncOpenAI") as mock:
        yield mock


def make_model() -> OpenAIModel:
    return OpenAIModel(id="openai/gpt-4o-mini", name="gpt-4o-mini", api_key="sk-test")


def chunk(content=None, finish_reason=None, usage=None, tool_calls=None):
    choices = []
    if content is not None or finish_reason is not None or tool_calls is not None:
        delta = SimpleNamespace(content=content, tool_calls=tool_calls, reasoning_content=None)
        choices = [SimpleNamespace(delta=delta, finish_reason=finish_reason)]
    return SimpleNamespace(choices=choices, usage=usage)


@pytest.mark.asyncio
async def test_arun_stream_requests_usage(mock_openai):
    mock_client = mock_openai.return_value
    mock_stream = AsyncMock()
    mock_client.chat.completions.create = AsyncMock(return_value=mock_stream)

    async def stream_generator():
        yield chunk(content="Hel")
        yield chunk(content="lo", finish_reason="stop")
        yield chunk(
            usage=SimpleNamespace(prompt_tokens=9, completion_tokens=2, total_tokens=11)
        )

    mock_stream.__aiter__.side_effect = stream_generator

    chunks = [c async for c in make_model().arun_stream([{"role": "user", "content": "Hi"}])]

    assert [c.content for c in chunks[:2]] == ["Hel", "lo"]
    assert chunks[1].finish_reason == "stop"
    assert chunks[2].usage == {"prompt_tokens": 9, "completion_tokens": 2, "total_tokens": 11}

    params = mock_client.chat.completions.create.call_args.kwargs
    assert params["stream"] is True
    assert params["stream_options"] == {"include_usage": True}
    assert "tools" not in params


@pytest.mark.asyncio
async def test_arun_collects_tool_calls(mock_openai):
    mock_client = mock_openai.return_value
    mock_stream = AsyncMock()
    mock_client.chat.completions.create = AsyncMock(return_value=mock_stream)

    def tool_delta(payload):
        delta = MagicMock()
        delta.model_dump.return_value = payload
        return delta

    async def stream_generator():
        yield chunk(
            tool_calls=[
                tool_delta(
                    {
                        "index": 0,
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "web_search", "arguments": '{"query"'},
                    }
                )
            ]
        )
        yield chunk(
            tool_calls=[tool_delta({"index": 0, "function": {"arguments": ': "sky"}'}})],
            finish_reason="tool_calls",
        )

    mock_stream.__aiter__.side_effect = stream_generator

    response = await make_model().arun([{"role": "user", "content": "Hi"}])

    assert response.content == ""
    assert response.tool_calls == [
        {
            "id": "call_1",
            "type": "function",
            "function": {"name": "web_search", "arguments": '{"query": "sky"}'},
        }
    ]


def test_client_uses_settings_credentials(mock_openai, monkeypatch):
    from pydantic import SecretStr

    from sleuth.config import settings

    monkeypatch.setattr(settings, "openai_api_key", SecretStr("sk-from-settings"))
    monkeypatch.setattr(settings, "openai_base_url", "https://compatible.example/v1")

    OpenAIModel(id="openai/local", name="local")

    mock_openai.assert_called_once_with(
        api_key="sk-from-settings", base_url="https://compatible.example/v1"
    )
