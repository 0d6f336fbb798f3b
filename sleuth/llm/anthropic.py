"""
Anthropic messages adapter.

Takes OpenAI format messages and tools. The system message moves to the
``system`` parameter, assistant tool calls become tool_use blocks, and
tool messages become tool_result blocks. Results of one parallel tool step
share a single user turn, since the API rejects consecutive user turns.
"""

import json
from typing import Any, AsyncIterator

from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AsyncAnthropic,
    RateLimitError,
)
from pydantic import Field

from sleuth.llm.base import ProviderModel, StreamChunk, has_payload
from sleuth.utils.logging import get_logger
from sleuth.utils.retry import retry_async

logger = get_logger(__name__)

ANTHROPIC_RETRYABLE = (
    APIConnectionError,
    RateLimitError,
    APITimeoutError,
)

STOP_REASONS = {"tool_use": "tool_calls", "max_tokens": "length"}


def _tool_input(arguments: Any) -> dict:
    if not isinstance(arguments, str):
        return dict(arguments or {})
    try:
        return json.loads(arguments) if arguments.strip() else {}
    except json.JSONDecodeError:
        logger.warning("tool_arguments_not_json", arguments=arguments[:200])
        return {}


def _assistant_content(msg: dict) -> str | list[dict]:
    text = msg.get("content")
    if not msg.get("tool_calls"):
        return text or ""
    blocks: list[dict] = [{"type": "text", "text": text}] if text else []
    for call in msg["tool_calls"]:
        fn = call["function"]
        blocks.append(
            {
                "type": "tool_use",
                "id": call["id"],
                "name": fn["name"],
                "input": _tool_input(fn.get("arguments")),
            }
        )
    return blocks


def _tool_result_block(msg: dict) -> dict:
    content = msg.get("content")
    return {
        "type": "tool_result",
        "tool_use_id": msg.get("tool_call_id"),
        "content": content if isinstance(content, str) else json.dumps(content),
    }


class _StreamState:
    """Folds Anthropic stream events into StreamChunks."""

    def __init__(self):
        self.usage: dict[str, int] = {}
        self.tool_blocks: dict[int, dict] = {}

    def feed(self, event) -> StreamChunk:
        out = StreamChunk()
        handler = getattr(self, f"_on_{event.type}", None)
        if handler is not None:
            handler(event, out)
        return out

    def _on_message_start(self, event, out: StreamChunk) -> None:
        usage = getattr(event.message, "usage", None)
        if usage is not None:
            self.usage["input_tokens"] = getattr(usage, "input_tokens", 0) or 0
            self.usage["output_tokens"] = getattr(usage, "output_tokens", 0) or 0

    def _on_content_block_start(self, event, out: StreamChunk) -> None:
        block = event.content_block
        if block.type == "tool_use":
            self.tool_blocks[event.index] = {"id": block.id, "name": block.name, "json": ""}

    def _on_content_block_delta(self, event, out: StreamChunk) -> None:
        delta = event.delta
        if delta.type == "text_delta":
            out.content = delta.text
        elif delta.type == "thinking_delta":
            out.reasoning_content = delta.thinking
        elif delta.type == "input_json_delta" and event.index in self.tool_blocks:
            self.tool_blocks[event.index]["json"] += delta.partial_json

    def _on_content_block_stop(self, event, out: StreamChunk) -> None:
        block = self.tool_blocks.pop(event.index, None)
        if block is not None:
            out.tool_calls = [
                {
                    "index": event.index,
                    "id": block["id"],
                    "type": "function",
                    "function": {"name": block["name"], "arguments": block["json"]},
                }
            ]

    def _on_message_delta(self, event, out: StreamChunk) -> None:
        usage = getattr(event, "usage", None)
        if usage is not None:
            output_tokens = getattr(usage, "output_tokens", None)
            if output_tokens is not None:
                self.usage["output_tokens"] = output_tokens
            out.usage = dict(self.usage)
        stop_reason = event.delta.stop_reason
        if stop_reason:
            out.finish_reason = STOP_REASONS.get(stop_reason, stop_reason)


class AnthropicModel(ProviderModel):
    """Anthropic Claude chat model."""

    provider = "anthropic"

    max_tokens_to_sample: int = Field(default=4096, ge=1)

    def _build_client(self, api_key: str | None, base_url: str | None) -> AsyncAnthropic:
        kwargs: dict[str, Any] = {"api_key": api_key}
        if base_url:
            kwargs["base_url"] = base_url
        return AsyncAnthropic(**kwargs)

    def _convert_messages(self, messages: list[dict]) -> tuple[str | None, list[dict]]:
        system_prompt = None
        converted: list[dict] = []
        for msg in messages:
            role = msg.get("role")
            if role == "system":
                system_prompt = msg.get("content")
            elif role == "user":
                converted.append({"role": "user", "content": msg.get("content")})
            elif role == "assistant":
                converted.append({"role": "assistant", "content": _assistant_content(msg)})
            elif role == "tool":
                block = _tool_result_block(msg)
                last = converted[-1] if converted else None
                if last and last["role"] == "user" and isinstance(last["content"], list):
                    last["content"].append(block)
                else:
                    converted.append({"role": "user", "content": [block]})
        return system_prompt, converted

    @staticmethod
    def _convert_tools(tools: list[dict] | None) -> list[dict]:
        return [
            {
                "name": tool["function"]["name"],
                "description": tool["function"].get("description", ""),
                "input_schema": tool["function"].get("parameters", {}),
            }
            for tool in tools or []
            if tool.get("type") == "function"
        ]

    def _request_params(self, messages: list[dict], tools: list[dict] | None) -> dict:
        system_prompt, converted = self._convert_messages(messages)
        params: dict[str, Any] = {
            "model": self.api_model,
            "messages": converted,
            "max_tokens": self.max_tokens or self.max_tokens_to_sample,
            "temperature": self.temperature,
            "stream": True,
        }
        optional = {
            "system": system_prompt,
            "top_p": self.top_p,
            "tools": self._convert_tools(tools) or None,
        }
        params.update({k: v for k, v in optional.items() if v is not None})
        return params

    @retry_async(exceptions=ANTHROPIC_RETRYABLE)
    async def _open_stream(self, params: dict):
        return await self.client.messages.create(**params)

    async def _translate(self, stream) -> AsyncIterator[StreamChunk]:
        state = _StreamState()
        async for event in stream:
            chunk = state.feed(event)
            if has_payload(chunk):
                yield chunk


__all__ = ["AnthropicModel"]
