"""
Domain module - Pure domain models with no runtime dependencies.

This module contains all core data models and events.
"""

# Models
from .models import (
    ChatTurn,
    Document,
    RunOutcome,
    RunStatus,
    SubagentExecution,
    SubagentStatus,
    TokenUsage,
    ToolCallRecord,
    ToolCallStatus,
    UsageSnapshot,
    UsageTarget,
    normalize_role,
)

# Events
from .events import (
    EventType,
    StreamEvent,
    TERMINAL_EVENT_TYPES,
    create_end_event,
    create_error_event,
    create_ping_event,
    create_response_event,
    create_sources_added_event,
    create_sources_event,
    create_stats_event,
    create_subagent_completed_event,
    create_subagent_data_event,
    create_subagent_error_event,
    create_subagent_started_event,
    create_synthesis_started_event,
    create_todo_update_event,
    create_tool_call_error_event,
    create_tool_call_started_event,
    create_tool_call_success_event,
)

# Graph events
from .graph_events import MODEL_NODE, TOOLS_NODE, GraphEvent, GraphEventKind

# Tools
from .tools import ToolResult

__all__ = [
    # Models
    "ChatTurn",
    "Document",
    "RunOutcome",
    "RunStatus",
    "SubagentExecution",
    "SubagentStatus",
    "TokenUsage",
    "ToolCallRecord",
    "ToolCallStatus",
    "UsageSnapshot",
    "UsageTarget",
    "normalize_role",
    # Events
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
    # Graph events
    "GraphEvent",
    "GraphEventKind",
    "MODEL_NODE",
    "TOOLS_NODE",
    # Tools
    "ToolResult",
]
