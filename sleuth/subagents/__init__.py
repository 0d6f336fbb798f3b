"""
Subagents - delegated child runs.

- SubagentDefinition / registry: what a kind of subagent may do
- SubagentExecutor: one isolated child run relayed onto the parent stream
- Supervisor: optional decomposition of a query into parallel subagents
"""

from sleuth.subagents.definitions import (
    DEEP_RESEARCH,
    SubagentDefinition,
    available_subagents,
    get_subagent_definition,
    subagent_exists,
)
from sleuth.subagents.executor import SubagentExecutor, context_turns, new_execution_id
from sleuth.subagents.supervisor import Decomposition, Supervisor, parse_decomposition

__all__ = [
    "DEEP_RESEARCH",
    "Decomposition",
    "SubagentDefinition",
    "SubagentExecutor",
    "Supervisor",
    "available_subagents",
    "context_turns",
    "get_subagent_definition",
    "new_execution_id",
    "parse_decomposition",
    "subagent_exists",
]
