"""
Sleuth - streamed, tool-augmented research agent runtime

Top-level exports for easy access to core functionality.
"""

# Domain models
from sleuth.domain import (
    ChatTurn,
    Document,
    EventType,
    RunOutcome,
    RunStatus,
    StreamEvent,
    SubagentExecution,
    TokenUsage,
    ToolResult,
    UsageSnapshot,
)

# Models
from sleuth.llm import AnthropicModel, Model, OpenAIModel

# Runtime
from sleuth.runtime import AgentRunEngine, RunControl, RunControlRegistry, Wire

# Tools
from sleuth.tools import BaseTool, DeepResearchTool, TodoListTool, ToolRegistry

# Subagents
from sleuth.subagents import SubagentExecutor, Supervisor

# Config
from sleuth.config import ExecutionConfig, settings

__version__ = "0.1.0"

__all__ = [
    # Domain
    "ChatTurn",
    "Document",
    "EventType",
    "RunOutcome",
    "RunStatus",
    "StreamEvent",
    "SubagentExecution",
    "TokenUsage",
    "ToolResult",
    "UsageSnapshot",
    # Models
    "AnthropicModel",
    "Model",
    "OpenAIModel",
    # Runtime
    "AgentRunEngine",
    "RunControl",
    "RunControlRegistry",
    "Wire",
    # Tools
    "BaseTool",
    "DeepResearchTool",
    "TodoListTool",
    "ToolRegistry",
    # Subagents
    "SubagentExecutor",
    "Supervisor",
    # Config
    "ExecutionConfig",
    "settings",
]
