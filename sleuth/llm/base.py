"""
Model abstraction layer - Pure LLM Interface

Responsibilities:
- Encapsulate different LLM provider APIs
- Provide unified streaming interface
- Pass provider usage through untouched (see sleuth.llm.usage)

Does NOT handle:
- Tool loop logic (sleuth.runtime.graph)
- Event wrapping
- Token accounting
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, ClassVar

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from sleuth.utils.logging import get_logger

logger = get_logger(__name__)


class StreamChunk(BaseModel):
    """
    Minimal unit of LLM streaming output.

    All Model implementations must standardize their vendor-specific
    streaming output to this format. ``usage`` keeps the provider's own
    field names; the ledger normalizes them.
    """

    model_config = ConfigDict(frozen=False)

    content: str | list[dict] | None = Field(
        default=None, description="Text delta, or content blocks for block-style providers"
    )
    reasoning_content: str | None = Field(
        default=None, description="Reasoning content delta (e.g., thinking mode)"
    )
    tool_calls: list[dict] | None = Field(
        default=None, description="Tool calls delta (OpenAI format)"
    )
    usage: dict[str, Any] | None = Field(
        default=None, description="Provider usage payload, provider field names"
    )
    finish_reason: str | None = Field(
        default=None, description="Finish reason: stop, tool_calls, length, etc."
    )


class ModelResponse(BaseModel):
    """A fully collected, non-streamed model reply."""

    content: str = ""
    tool_calls: list[dict] = Field(default_factory=list)
    usage: dict[str, Any] | None = None


class Model(BaseModel, ABC):
    """
    Unified Model abstract base class.

    All LLM implementations (OpenAI, Anthropic, test doubles) inherit this
    class and implement arun_stream().
    """

    id: str = Field(description="Model identifier, format: provider/model-name")
    name: str = Field(description="Model name")

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    @abstractmethod
    def arun_stream(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Unified streaming interface.

        Args:
            messages: Message list, standard OpenAI format
            tools: Tool definition list, OpenAI format

        Yields:
            StreamChunk: Streaming output chunk
        """

    async def arun(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
    ) -> ModelResponse:
        """Drain arun_stream() into a single response."""
        from sleuth.utils.content import extract_text_content

        text = ""
        usage: dict[str, Any] | None = None
        calls: dict[int, dict] = {}
        async for chunk in self.arun_stream(messages, tools):
            if chunk.content:
                text += extract_text_content(chunk.content)
            if chunk.usage:
                usage = chunk.usage
            for tc in chunk.tool_calls or []:
                index = tc.get("index", len(calls))
                call = calls.setdefault(
                    index,
                    {"id": "", "type": "function", "function": {"name": "", "arguments": ""}},
                )
                if tc.get("id"):
                    call["id"] = tc["id"]
                fn = tc.get("function") or {}
                if fn.get("name"):
                    call["function"]["name"] = fn["name"]
                if fn.get("arguments"):
                    call["function"]["arguments"] += fn["arguments"]
        return ModelResponse(
            content=text,
            tool_calls=[calls[i] for i in sorted(calls)],
            usage=usage,
        )


class ProviderModel(Model):
    """
    Model served by a remote chat API.

    Subclasses translate requests and stream events for one provider; this
    class owns client setup, request logging and the retried stream opening.
    """

    provider: ClassVar[str]

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    model_name: str | None = Field(
        default=None, description="Model name sent to the API (defaults to name)"
    )
    api_key: SecretStr | None = Field(default=None, exclude=True)
    base_url: str | None = None
    client: Any = Field(default=None, exclude=True)

    @property
    def api_model(self) -> str:
        return self.model_name or self.name

    def model_post_init(self, __context) -> None:
        from sleuth.config import settings

        if self.client is not None:
            return
        key = self.api_key or getattr(settings, f"{self.provider}_api_key")
        self.client = self._build_client(
            key.get_secret_value() if key else None,
            self.base_url or getattr(settings, f"{self.provider}_base_url"),
        )

    @abstractmethod
    def _build_client(self, api_key: str | None, base_url: str | None) -> Any: ...

    @abstractmethod
    def _request_params(self, messages: list[dict], tools: list[dict] | None) -> dict: ...

    @abstractmethod
    async def _open_stream(self, params: dict) -> Any:
        """Open the provider stream; implementations add their retry policy."""

    @abstractmethod
    def _translate(self, stream: Any) -> AsyncIterator[StreamChunk]: ...

    async def arun_stream(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        params = self._request_params(messages, tools)
        request_info = {
            "provider": self.provider,
            "model": self.api_model,
            "messages_count": len(messages),
            "tools_count": len(tools or []),
        }
        logger.info("llm_request", **request_info)

        # Only opening the stream is retried; a stream that fails midway
        # has already produced output the caller has seen.
        try:
            stream = await self._open_stream(params)
        except Exception as e:
            logger.error(
                "llm_request_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
                **request_info,
            )
            raise

        async for chunk in self._translate(stream):
            yield chunk


def has_payload(chunk: StreamChunk) -> bool:
    return any(
        value is not None
        for value in (
            chunk.content,
            chunk.reasoning_content,
            chunk.tool_calls,
            chunk.usage,
            chunk.finish_reason,
        )
    )


__all__ = ["Model", "ModelResponse", "ProviderModel", "StreamChunk", "has_payload"]
