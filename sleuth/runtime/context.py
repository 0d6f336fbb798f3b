"""
Execution context passed explicitly to every graph step, tool and nested run.

Nothing about a run's identity is propagated implicitly: a callee learns its
run id, its ancestry and where to publish graph events only through the
ExecutionContext it is handed.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from sleuth.domain import ChatTurn, GraphEvent, StreamEvent
from sleuth.runtime.control import RunControl
from sleuth.runtime.wire import Wire

if TYPE_CHECKING:
    from sleuth.llm import Model
    from sleuth.runtime.graph import GraphState
    from sleuth.tools.base import BaseTool


EmitFn = Callable[[StreamEvent], Awaitable[None]]
UsageReportFn = Callable[[Any, Any], Awaitable[None]]


@dataclass
class RunServices:
    """
    Collaborators of one run, shared by every tool invoked inside it.

    Attributes:
        chat_model: Primary model
        system_model: Auxiliary model (falls back to chat_model)
        emit: Writes an outward event on the run's stream
        report_usage: Out-of-band usage report, ``(target, usage)`` where
            target is "primary"/"auxiliary" and usage a provider dict or
            TokenUsage
        tools: Tools available to the run (delegation whitelists filter this)
        history: Conversation the run was started with
        system_prompt: System prompt in effect for the run
        query: The user query of the run
        file_ids: Uploaded files the run may read
        message_id: Caller-side message identifier
    """

    chat_model: "Model"
    system_model: "Model | None" = None
    emit: EmitFn | None = None
    report_usage: UsageReportFn | None = None
    tools: list["BaseTool"] = field(default_factory=list)
    history: list[ChatTurn] = field(default_factory=list)
    system_prompt: str | None = None
    query: str = ""
    file_ids: list[str] = field(default_factory=list)
    message_id: str | None = None

    @property
    def auxiliary_model(self) -> "Model":
        return self.system_model or self.chat_model


@dataclass(frozen=True)
class ExecutionContext:
    """
    Immutable execution context.

    Use child() to create nested contexts; the child inherits the feeds and
    the run control, and records this context's run id as its parent.

    Attributes:
        run_id: Identifier of the chain, tool invocation or nested run
        parent_ids: Ancestor run ids, outermost first
        feeds: Graph event channels. A nested run adds its own feed on top of
            the inherited ones, so ancestors observe its events as well.
        control: Abort and retrieval signals (shared with child runs)
        services: Collaborators of the run
        state: Graph state of the enclosing chain, when there is one
        depth: Nesting depth of runs (0 = top-level)
        metadata: Additional metadata
    """

    run_id: str
    parent_ids: tuple[str, ...] = ()
    feeds: tuple[Wire, ...] = ()
    control: RunControl = field(default_factory=RunControl)
    services: RunServices | None = None
    state: "GraphState | None" = None
    depth: int = 0
    metadata: dict = field(default_factory=dict)

    def child(self, run_id: str, **overrides) -> "ExecutionContext":
        """
        Create a context one level below this one.

        Args:
            run_id: Run id of the nested unit of work
            **overrides: Fields to override (feeds, services, state, ...)

        Returns:
            New ExecutionContext whose parent_ids end with this run id
        """
        metadata = dict(self.metadata)
        metadata.update(overrides.pop("metadata", None) or {})
        values = {
            "run_id": run_id,
            "parent_ids": self.parent_ids + (self.run_id,),
            "metadata": metadata,
        }
        values.update(overrides)
        return replace(self, **values)

    @property
    def parent_id(self) -> str | None:
        return self.parent_ids[-1] if self.parent_ids else None

    @property
    def is_nested(self) -> bool:
        return self.depth > 0

    async def publish(self, event: GraphEvent) -> None:
        """Publish a graph event on every feed of this context."""
        for feed in self.feeds:
            await feed.write(event)

    async def emit(self, event: StreamEvent) -> None:
        """Write an outward event on the owning run's stream, if any."""
        if self.services is not None and self.services.emit is not None:
            await self.services.emit(event)

    async def report_usage(self, target: Any, usage: Any) -> None:
        if self.services is not None and self.services.report_usage is not None:
            await self.services.report_usage(target, usage)

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(run_id={self.run_id!r}, "
            f"depth={self.depth}, "
            f"parent_id={self.parent_id!r})"
        )


__all__ = ["ExecutionContext", "RunServices"]
