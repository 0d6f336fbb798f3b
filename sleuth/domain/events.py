"""
Event protocol for the outward run stream.

These are the records an engine writes to its Event Sink. They are
append-only and frozen once created; consumers reconcile earlier markup by
applying later events (tool_call_success patches the block that
tool_call_started appended), never by rewriting history.
"""

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import Document, SubagentExecution, UsageSnapshot


class EventType(str, Enum):
    """Event types for the outward stream"""

    # Content
    RESPONSE = "response"
    SOURCES_ADDED = "sources_added"
    SOURCES = "sources"
    STATS = "stats"

    # Tool lifecycle
    TOOL_CALL_STARTED = "tool_call_started"
    TOOL_CALL_SUCCESS = "tool_call_success"
    TOOL_CALL_ERROR = "tool_call_error"

    # Subagent lifecycle
    SUBAGENT_STARTED = "subagent_started"
    SUBAGENT_DATA = "subagent_data"
    SUBAGENT_COMPLETED = "subagent_completed"
    SUBAGENT_ERROR = "subagent_error"
    SYNTHESIS_STARTED = "synthesis_started"

    # Planning widget (transient, not persisted)
    TODO_UPDATE = "todo_update"

    # Terminal
    END = "end"
    ERROR = "error"

    # Keep-alive
    PING = "ping"


TERMINAL_EVENT_TYPES = frozenset({EventType.END, EventType.ERROR})


class StreamEvent(BaseModel):
    """
    Unified outward event.

    Only the fields relevant to ``type`` are set; serialization drops the
    rest and uses camelCase keys (toolCallId, executionId, ...).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )

    type: EventType
    timestamp: float = Field(default_factory=time.time)

    # response / sources / stats / error / subagent_data / todo_update payload
    data: Any = None

    # Tool lifecycle
    tool_call_id: str | None = None
    content: str | None = None
    status: str | None = None
    error: str | None = None
    extra: dict[str, str] | None = None

    # Sources
    search_query: str | None = None

    # Subagent lifecycle
    execution_id: str | None = None
    id: str | None = None
    name: str | None = None
    task: str | None = None
    subagent_id: str | None = None
    subagent_name: str | None = None
    summary: str | None = None
    documents: list[Document] | None = None

    # Terminal error classification ("cancelled" | "failed")
    reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_ndjson(self) -> str:
        """
        Convert to a newline-delimited JSON line.

        Returns:
            str: one JSON object followed by a newline, ready to write to
            a streaming HTTP response
        """
        return self.to_json() + "\n"


# ============================================================================
# Event Factory Functions
# ============================================================================


def create_response_event(text: str) -> StreamEvent:
    return StreamEvent(type=EventType.RESPONSE, data=text)


def create_tool_call_started_event(tool_call_id: str, content: str) -> StreamEvent:
    """Create a TOOL_CALL_STARTED event carrying the initial markup fragment"""
    return StreamEvent(
        type=EventType.TOOL_CALL_STARTED,
        tool_call_id=tool_call_id,
        content=content,
        status="running",
    )


def create_tool_call_success_event(
    tool_call_id: str, extra: dict[str, str] | None = None
) -> StreamEvent:
    return StreamEvent(
        type=EventType.TOOL_CALL_SUCCESS,
        tool_call_id=tool_call_id,
        status="success",
        extra=extra or None,
    )


def create_tool_call_error_event(tool_call_id: str, error: str) -> StreamEvent:
    return StreamEvent(
        type=EventType.TOOL_CALL_ERROR,
        tool_call_id=tool_call_id,
        status="error",
        error=error,
    )


def create_sources_added_event(documents: list[Document], search_query: str) -> StreamEvent:
    return StreamEvent(
        type=EventType.SOURCES_ADDED,
        data=list(documents),
        search_query=search_query,
    )


def create_sources_event(documents: list[Document]) -> StreamEvent:
    return StreamEvent(type=EventType.SOURCES, data=list(documents))


def create_stats_event(snapshot: UsageSnapshot) -> StreamEvent:
    return StreamEvent(type=EventType.STATS, data=snapshot)


def create_subagent_started_event(execution_id: str, name: str, task: str) -> StreamEvent:
    return StreamEvent(
        type=EventType.SUBAGENT_STARTED,
        execution_id=execution_id,
        name=name,
        task=task,
    )


def create_subagent_data_event(
    subagent_id: str, subagent_name: str, inner: StreamEvent
) -> StreamEvent:
    """Wrap a child run's event in the envelope relayed on the parent stream"""
    return StreamEvent(
        type=EventType.SUBAGENT_DATA,
        subagent_id=subagent_id,
        subagent_name=subagent_name,
        data=inner,
    )


def create_subagent_completed_event(execution: SubagentExecution) -> StreamEvent:
    return StreamEvent(
        type=EventType.SUBAGENT_COMPLETED,
        id=execution.id,
        name=execution.name,
        task=execution.task,
        status=execution.status.value,
        summary=execution.summary,
        documents=list(execution.documents),
    )


def create_subagent_error_event(execution: SubagentExecution) -> StreamEvent:
    return StreamEvent(
        type=EventType.SUBAGENT_ERROR,
        id=execution.id,
        name=execution.name,
        task=execution.task,
        status=execution.status.value,
        error=execution.error or "Unknown error",
    )


def create_synthesis_started_event(subtask_count: int) -> StreamEvent:
    return StreamEvent(type=EventType.SYNTHESIS_STARTED, data={"subtaskCount": subtask_count})


def create_todo_update_event(todos: list[dict[str, str]]) -> StreamEvent:
    return StreamEvent(type=EventType.TODO_UPDATE, data={"todos": todos})


def create_end_event() -> StreamEvent:
    return StreamEvent(type=EventType.END)


def create_error_event(message: str, reason: str = "failed") -> StreamEvent:
    """Create a terminal ERROR event; reason is "cancelled" or "failed"."""
    return StreamEvent(type=EventType.ERROR, data=message, reason=reason)


def create_ping_event() -> StreamEvent:
    return StreamEvent(type=EventType.PING)


__all__ = [
    "EventType",
    "StreamEvent",
    "TERMINAL_EVENT_TYPES",
    "create_end_event",
    "create_error_event",
    "create_ping_event",
    "create_response_event",
    "create_sources_added_event",
    "create_sources_event",
    "create_stats_event",
    "create_subagent_completed_event",
    "create_subagent_data_event",
    "create_subagent_error_event",
    "create_subagent_started_event",
    "create_synthesis_started_event",
    "create_todo_update_event",
    "create_tool_call_error_event",
    "create_tool_call_started_event",
    "create_tool_call_success_event",
]
