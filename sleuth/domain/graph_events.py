"""
Low-level execution graph events.

AgentGraph publishes these on every feed of its ExecutionContext. A nested
run inherits its parent's feeds, so a parent engine sees its children's
graph events too and must attribute each one by run id before acting on it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class GraphEventKind(str, Enum):
    CHAIN_START = "chain_start"
    CHAIN_END = "chain_end"
    CHAIN_ERROR = "chain_error"

    MODEL_START = "model_start"
    MODEL_STREAM = "model_stream"
    MODEL_END = "model_end"

    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    TOOL_ERROR = "tool_error"


# Graph node names
MODEL_NODE = "model_request"
TOOLS_NODE = "tools"


@dataclass(frozen=True)
class GraphEvent:
    """
    One event from the model+tool execution graph.

    Attributes:
        kind: What happened
        name: Chain, model or tool name
        run_id: Identifier of the chain/model call/tool invocation
        parent_ids: Ancestor run ids, outermost first
        node: Graph node the event was produced in (MODEL_NODE, TOOLS_NODE)
        data: Kind specific payload (input, chunk, output, error)
    """

    kind: GraphEventKind
    name: str
    run_id: str
    parent_ids: tuple[str, ...] = ()
    node: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def parent_id(self) -> str | None:
        """Immediate parent run id."""
        return self.parent_ids[-1] if self.parent_ids else None


__all__ = ["GraphEvent", "GraphEventKind", "MODEL_NODE", "TOOLS_NODE"]
