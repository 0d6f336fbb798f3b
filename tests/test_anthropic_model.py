"""
Tests for AnthropicModel
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sleuth.llm import AnthropicModel


@pytest.fixture
def mock_anthropic():
    with patch("sleuth.llm.anthropic.AsyncAnthropic") as mock:
        yield mock


def make_model() -> AnthropicModel:
    return AnthropicModel(
        id="anthropic/claude-3-opus",
        name="claude-3-opus",
        api_key="sk-test",
    )


def event(event_type: str, **attrs) -> MagicMock:
    ev = MagicMock()
    ev.type = event_type
    for name, value in attrs.items():
        setattr(ev, name, value)
    return ev


@pytest.mark.asyncio
async def test_anthropic_init(mock_anthropic):
    """Test initialization."""
    model = make_model()
    assert model.name == "claude-3-opus"
    mock_anthropic.assert_called_once_with(api_key="sk-test")


@pytest.mark.asyncio
async def test_convert_messages(mock_anthropic):
    """Test message conversion."""
    model = make_model()

    messages = [
        {"role": "system", "content": "System prompt"},
        {"role": "user", "content": "Hello"},
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "web_search", "arguments": '{"query": "sky"}'},
                }
            ],
        },
        {"role": "tool", "tool_call_id": "call_1", "content": "result"},
    ]

    system, converted = model._convert_messages(messages)

    assert system == "System prompt"
    assert len(converted) == 3
    assert converted[0] == {"role": "user", "content": "Hello"}
    assert converted[1]["content"] == [
        {"type": "tool_use", "id": "call_1", "name": "web_search", "input": {"query": "sky"}}
    ]
    assert converted[2]["role"] == "user"
    assert converted[2]["content"][0]["type"] == "tool_result"
    assert converted[2]["content"][0]["tool_use_id"] == "call_1"


@pytest.mark.asyncio
async def test_arun_stream(mock_anthropic):
    """Test streaming execution."""
    mock_client = mock_anthropic.return_value
    mock_stream = AsyncMock()
    mock_client.messages.create = AsyncMock(return_value=mock_stream)

    async def stream_generator():
        start = event("message_start")
        start.message.usage.input_tokens = 12
        start.message.usage.output_tokens = 1
        yield start

        text = event("content_block_delta", index=0)
        text.delta.type = "text_delta"
        text.delta.text = "Hello"
        yield text

        done = event("message_delta")
        done.usage.output_tokens = 7
        done.delta.stop_reason = "end_turn"
        yield done

    mock_stream.__aiter__.side_effect = stream_generator

    chunks = [chunk async for chunk in make_model().arun_stream([{"role": "user", "content": "Hi"}])]

    assert len(chunks) == 2
    assert chunks[0].content == "Hello"
    assert chunks[1].finish_reason == "end_turn"
    assert chunks[1].usage == {"input_tokens": 12, "output_tokens": 7}


@pytest.mark.asyncio
async def test_arun_stream_tool_use(mock_anthropic):
    mock_client = mock_anthropic.return_value
    mock_stream = AsyncMock()
    mock_client.messages.create = AsyncMock(return_value=mock_stream)

    async def stream_generator():
        block = event("content_block_start", index=1)
        block.content_block.type = "tool_use"
        block.content_block.id = "toolu_1"
        block.content_block.name = "web_search"
        yield block

        for part in ('{"query": ', '"sky"}'):
            delta = event("content_block_delta", index=1)
            delta.delta.type = "input_json_delta"
            delta.delta.partial_json = part
            yield delta

        yield event("content_block_stop", index=1)

        done = event("message_delta", usage=None)
        done.delta.stop_reason = "tool_use"
        yield done

    mock_stream.__aiter__.side_effect = stream_generator

    chunks = [chunk async for chunk in make_model().arun_stream([{"role": "user", "content": "Hi"}])]

    assert chunks[0].tool_calls == [
        {
            "index": 1,
            "id": "toolu_1",
            "type": "function",
            "function": {"name": "web_search", "arguments": '{"query": "sky"}'},
        }
    ]
    assert chunks[1].finish_reason == "tool_calls"


@pytest.mark.asyncio
async def test_parallel_tool_results_share_one_user_turn(mock_anthropic):
    model = make_model()
    calls = [
        {"id": f"call_{i}", "type": "function", "function": {"name": "web_search", "arguments": ""}}
        for i in (1, 2)
    ]
    messages = [
        {"role": "user", "content": "Compare"},
        {"role": "assistant", "content": "Searching both.", "tool_calls": calls},
        {"role": "tool", "tool_call_id": "call_1", "content": "first"},
        {"role": "tool", "tool_call_id": "call_2", "content": {"items": 2}},
    ]

    _, converted = model._convert_messages(messages)

    assert [m["role"] for m in converted] == ["user", "assistant", "user"]
    assert converted[1]["content"][0] == {"type": "text", "text": "Searching both."}
    assert converted[1]["content"][1]["input"] == {}
    results = converted[2]["content"]
    assert [r["tool_use_id"] for r in results] == ["call_1", "call_2"]
    assert results[1]["content"] == '{"items": 2}'


@pytest.mark.asyncio
async def test_request_params(mock_anthropic):
    model = AnthropicModel(
        id="anthropic/claude", name="claude", model_name="claude-sonnet", api_key="k", top_p=0.9
    )
    tools = [
        {
            "type": "function",
            "function": {"name": "web_search", "description": "Search", "parameters": {"type": "object"}},
        }
    ]

    params = model._request_params(
        [{"role": "system", "content": "Be brief"}, {"role": "user", "content": "Hi"}], tools
    )

    assert params["model"] == "claude-sonnet"
    assert params["system"] == "Be brief"
    assert params["max_tokens"] == 4096
    assert params["top_p"] == 0.9
    assert params["tools"] == [
        {"name": "web_search", "description": "Search", "input_schema": {"type": "object"}}
    ]
    assert "tools" not in model._request_params([{"role": "user", "content": "Hi"}], None)


@pytest.mark.asyncio
async def test_max_tokens_stop_maps_to_length(mock_anthropic):
    mock_client = mock_anthropic.return_value
    mock_stream = AsyncMock()
    mock_client.messages.create = AsyncMock(return_value=mock_stream)

    async def stream_generator():
        done = event("message_delta", usage=None)
        done.delta.stop_reason = "max_tokens"
        yield done

    mock_stream.__aiter__.side_effect = stream_generator

    chunks = [chunk async for chunk in make_model().arun_stream([{"role": "user", "content": "Hi"}])]

    assert [c.finish_reason for c in chunks] == ["length"]
