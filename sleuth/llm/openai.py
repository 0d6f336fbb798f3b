"""
OpenAI chat completions adapter.

Works against any OpenAI compatible endpoint (set base_url). Streams are
requested with include_usage so the final chunk carries the usage payload,
which is passed on with the provider's field names.
"""

from typing import Any, AsyncIterator

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)

from sleuth.llm.base import ProviderModel, StreamChunk, has_payload
from sleuth.utils.retry import retry_async

OPENAI_RETRYABLE = (
    APIConnectionError,
    RateLimitError,
    InternalServerError,
    APITimeoutError,
)


def _usage_payload(usage: Any) -> dict[str, Any]:
    if hasattr(usage, "model_dump"):
        return usage.model_dump(exclude_none=True)
    return dict(vars(usage))


class OpenAIModel(ProviderModel):
    """OpenAI (and compatible) chat model."""

    provider = "openai"

    def _build_client(self, api_key: str | None, base_url: str | None) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=base_url)

    def _request_params(self, messages: list[dict], tools: list[dict] | None) -> dict:
        params: dict[str, Any] = {
            "model": self.api_model,
            "messages": messages,
            "temperature": self.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        optional = {"top_p": self.top_p, "max_tokens": self.max_tokens, "tools": tools or None}
        params.update({k: v for k, v in optional.items() if v is not None})
        return params

    @retry_async(exceptions=OPENAI_RETRYABLE)
    async def _open_stream(self, params: dict):
        return await self.client.chat.completions.create(**params)

    async def _translate(self, stream) -> AsyncIterator[StreamChunk]:
        async for chunk in stream:
            out = StreamChunk(usage=_usage_payload(chunk.usage) if chunk.usage else None)
            if chunk.choices:
                choice = chunk.choices[0]
                delta = choice.delta
                out.content = delta.content or None
                # Reasoning models on compatible endpoints
                out.reasoning_content = getattr(delta, "reasoning_content", None) or None
                if delta.tool_calls:
                    out.tool_calls = [tc.model_dump(exclude_none=True) for tc in delta.tool_calls]
                out.finish_reason = choice.finish_reason or None
            if has_payload(out):
                yield out


__all__ = ["OpenAIModel"]
