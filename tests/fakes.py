"""
Test doubles shared by the test modules.

- ScriptedModel: replays one scripted response per call (or asks a
  responder function), so tests control exactly what the model streams
- FakeTool: configurable tool returning documents, failing, or blocking
"""

import asyncio
import json
import time
from typing import Any, Callable

from pydantic import Field

from sleuth.domain import Document, ToolResult
from sleuth.llm import Model, StreamChunk
from sleuth.runtime import Wire
from sleuth.tools import BaseTool


def text(content: str) -> StreamChunk:
    return StreamChunk(content=content)


def usage(input_tokens: int, output_tokens: int) -> StreamChunk:
    return StreamChunk(usage={"input_tokens": input_tokens, "output_tokens": output_tokens})


def tool_call(call_id: str, name: str, args: dict | None = None, index: int = 0) -> StreamChunk:
    return StreamChunk(
        tool_calls=[
            {
                "index": index,
                "id": call_id,
                "type": "function",
                "function": {"name": name, "arguments": json.dumps(args or {})},
            }
        ]
    )


class ScriptedModel(Model):
    """
    Mock model for testing.

    Each call consumes the next entry of ``scripts``: a list of StreamChunks,
    where an asyncio.Event entry pauses the stream until it is set, a
    callable entry is called with no arguments, and an exception entry is
    raised. When a ``responder`` is given it is called
    with the messages instead, which keeps concurrent callers deterministic.
    """

    id: str = "test/scripted"
    name: str = "scripted"
    scripts: list[list[Any]] = Field(default_factory=list)
    responder: Callable[[list[dict]], list[Any]] | None = None
    calls: list[list[dict]] = Field(default_factory=list)

    async def arun_stream(self, messages, tools=None):
        self.calls.append(list(messages))
        if self.responder is not None:
            script = self.responder(messages)
        elif self.scripts:
            script = self.scripts.pop(0)
        else:
            script = [text("")]

        for item in script:
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            if isinstance(item, BaseException):
                raise item
            if callable(item):
                item()
                continue
            yield item


class FakeTool(BaseTool):
    """Tool double: returns content and documents, fails, or waits on a gate."""

    def __init__(
        self,
        name: str,
        content: str = "ok",
        documents: list[Document] | None = None,
        fail_with: str | None = None,
        raises: Exception | None = None,
        gate: asyncio.Event | None = None,
    ):
        self._name = name
        self.content = content
        self.documents = documents or []
        self.fail_with = fail_with
        self.raises = raises
        self.gate = gate
        self.invocations: list[dict] = []
        super().__init__()

    def get_name(self) -> str:
        return self._name

    def get_description(self) -> str:
        return f"Fake {self._name} tool"

    def get_parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {"query": {"type": "string"}}}

    async def execute(self, parameters, context) -> ToolResult:
        start_time = time.time()
        self.invocations.append(parameters)
        if self.soft_stopped(context):
            return self._create_soft_stop_result(parameters, start_time)
        if self.gate is not None:
            await self.gate.wait()
        if self.raises is not None:
            raise self.raises
        if self.fail_with is not None:
            return self._create_error_result(parameters, self.fail_with, start_time)
        return self._create_result(
            parameters, self.content, start_time, documents=list(self.documents)
        )


def doc(content: str, url: str, search_query: str | None = None, **metadata) -> Document:
    meta = {"url": url, "title": content[:20], **metadata}
    if search_query:
        meta["searchQuery"] = search_query
    return Document(page_content=content, metadata=meta)


async def drain(sink: Wire) -> list:
    return [event async for event in sink.read()]


def types_of(events) -> list[str]:
    return [event.type.value for event in events]
