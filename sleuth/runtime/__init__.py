"""
Runtime module - run orchestration.

This module contains:
- AgentRunEngine: One run from query to terminal event
- AgentGraph: Model + tool loop publishing GraphEvents
- RunAttributionTracker: Separates a run's own events from nested ones
- ToolCallTracker / MarkupDocument / MessageAccumulator: Markup lifecycle
- TokenUsageLedger: Two-model token accounting
- RunControl / RunControlRegistry: Hard cancel and soft stop
- Wire: Event streaming channel
- ExecutionContext: Explicit context handed to every step, tool and child run
"""

from sleuth.runtime.accumulator import MessageAccumulator
from sleuth.runtime.attribution import RunAttributionTracker
from sleuth.runtime.context import ExecutionContext, RunServices
from sleuth.runtime.control import (
    AbortSignal,
    Interruption,
    RunControl,
    RunControlRegistry,
)
from sleuth.runtime.engine import AgentRunEngine, extract_model_usage
from sleuth.runtime.exceptions import (
    RunCancelledError,
    RunInterruptedError,
    SleuthError,
    SubagentRunError,
    ToolNotFoundError,
)
from sleuth.runtime.graph import AgentGraph, GraphState, invoke_model
from sleuth.runtime.ledger import TokenUsageLedger
from sleuth.runtime.markup import MarkupDocument, MarkupPatch
from sleuth.runtime.synthesis import EarlySynthesizer
from sleuth.runtime.tool_calls import ToolCallTracker
from sleuth.runtime.tool_executor import ToolExecutor
from sleuth.runtime.wire import Wire

__all__ = [
    "AbortSignal",
    "AgentGraph",
    "AgentRunEngine",
    "EarlySynthesizer",
    "ExecutionContext",
    "GraphState",
    "Interruption",
    "MarkupDocument",
    "MarkupPatch",
    "MessageAccumulator",
    "RunAttributionTracker",
    "RunCancelledError",
    "RunControl",
    "RunControlRegistry",
    "RunInterruptedError",
    "RunServices",
    "SleuthError",
    "SubagentRunError",
    "TokenUsageLedger",
    "ToolCallTracker",
    "ToolExecutor",
    "Wire",
    "extract_model_usage",
    "invoke_model",
]
