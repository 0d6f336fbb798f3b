"""
Core domain models for sleuth.

This module contains the data carried through a run:
- Document / ChatTurn: research sources and conversation history
- TokenUsage / UsageSnapshot: two-model token accounting
- ToolCallRecord: lifecycle state of one tool invocation
- SubagentExecution: the immutable record a delegated child run produces
- RunOutcome: what AgentRunEngine.run() hands back to the caller
"""

import time
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ============================================================================
# Enums
# ============================================================================


class RunStatus(str, Enum):
    """Terminal state of a run"""

    RUNNING = "running"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class ToolCallStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class SubagentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class UsageTarget(str, Enum):
    """Which ledger side a usage report belongs to"""

    PRIMARY = "primary"
    AUXILIARY = "auxiliary"


# ============================================================================
# Conversation & Sources
# ============================================================================


class Document(BaseModel):
    """A research source produced by a tool."""

    page_content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def search_query(self) -> str:
        return self.metadata.get("searchQuery") or "Agent Search"


ROLE_ALIASES = {"human": "human", "user": "human", "assistant": "assistant", "ai": "assistant"}


def normalize_role(role: Any) -> str | None:
    """Map a history role onto "human" / "assistant"; None for any other role."""
    return ROLE_ALIASES.get(role) if isinstance(role, str) else None


class ChatTurn(BaseModel):
    """One prior turn of the conversation."""

    role: Literal["human", "assistant"]
    content: str

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        return normalize_role(value) or value

    @property
    def api_role(self) -> str:
        """Role name in OpenAI format messages."""
        return "user" if self.role == "human" else "assistant"

    @classmethod
    def from_pair(cls, pair: tuple[str, str] | list[str]) -> "ChatTurn":
        return cls(role=pair[0], content=pair[1])


# ============================================================================
# Usage
# ============================================================================


class TokenUsage(BaseModel):
    """Normalized token counts."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def is_empty(self) -> bool:
        return not (self.input_tokens or self.output_tokens or self.total_tokens)

    def plus(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + max(other.input_tokens, 0),
            output_tokens=self.output_tokens + max(other.output_tokens, 0),
            total_tokens=self.total_tokens + max(other.total_tokens, 0),
        )


class UsageSnapshot(BaseModel):
    """Point-in-time view of the two-model ledger."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    primary: TokenUsage = Field(default_factory=TokenUsage)
    auxiliary: TokenUsage = Field(default_factory=TokenUsage)
    combined_total: int = 0
    primary_model: str | None = None
    auxiliary_model: str | None = None


# ============================================================================
# Tool calls & Subagents
# ============================================================================


class ToolCallRecord(BaseModel):
    """Live state for one tool invocation, keyed by call id."""

    call_id: str
    tool_name: str
    status: ToolCallStatus = ToolCallStatus.RUNNING
    error: str | None = None
    extra: dict[str, str] | None = None


class SubagentExecution(BaseModel):
    """
    Result of one delegated child run.

    Created when the delegation tool is invoked, populated while the child
    streams, and frozen into its final form when the child terminates.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    task: str
    status: SubagentStatus = SubagentStatus.PENDING
    start_time: float = Field(default_factory=time.time)
    end_time: float | None = None
    documents: list[Document] = Field(default_factory=list)
    summary: str = ""
    error: str | None = None
    token_usage: UsageSnapshot | None = None

    @property
    def duration(self) -> float | None:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time


# ============================================================================
# Run outcome
# ============================================================================


class RunOutcome(BaseModel):
    """
    What the caller receives once a run has emitted its terminal event.

    ``markup`` is the accumulated markup document (response text plus
    ToolCall / SubagentExecution blocks) and is what gets persisted.
    """

    run_id: str
    status: RunStatus
    response: str = ""
    markup: str = ""
    documents: list[Document] = Field(default_factory=list)
    usage: UsageSnapshot = Field(default_factory=UsageSnapshot)
    error: str | None = None


__all__ = [
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
]
