"""
Run attribution: which graph events belong to this run.

A run's graph feed also carries the events of every nested run it spawns
(child feeds are layered on top of inherited ones). The tracker separates
them using three run id sets and nothing else: not nesting depth, not text.

- child_agent_run_ids: invocations of the delegation tool. Anything below
  one of these belongs to a child run.
- parent_tool_node_run_ids: this run's own "tools" chains. A tool
  invocation is ours when its immediate parent is one of them.
- parent_model_run_ids: this run's own reasoning-step model calls.
  Released by the engine only after the call's usage has been extracted.

One tracker per run; never shared between a parent and its children.
"""

from sleuth.domain import MODEL_NODE, TOOLS_NODE, GraphEvent, GraphEventKind
from sleuth.runtime.tool_calls import DELEGATION_TOOL_NAMES


class RunAttributionTracker:
    def __init__(self, delegation_tools: frozenset[str] = DELEGATION_TOOL_NAMES):
        self.delegation_tools = delegation_tools
        self.child_agent_run_ids: set[str] = set()
        self.parent_tool_node_run_ids: set[str] = set()
        self.parent_model_run_ids: set[str] = set()

    def observe(self, event: GraphEvent) -> None:
        """Update membership from one graph event. Must run before any forwarding."""
        kind = event.kind

        if event.name in self.delegation_tools:
            if kind == GraphEventKind.TOOL_START and not self.is_child_run(event):
                self.child_agent_run_ids.add(event.run_id)
                return
            if kind in (GraphEventKind.TOOL_END, GraphEventKind.TOOL_ERROR):
                self.child_agent_run_ids.discard(event.run_id)
                return

        if event.node == TOOLS_NODE and kind == GraphEventKind.CHAIN_START:
            if not self.is_child_run(event):
                self.parent_tool_node_run_ids.add(event.run_id)
        elif event.node == TOOLS_NODE and kind in (
            GraphEventKind.CHAIN_END,
            GraphEventKind.CHAIN_ERROR,
        ):
            self.parent_tool_node_run_ids.discard(event.run_id)
        elif event.node == MODEL_NODE and kind == GraphEventKind.MODEL_START:
            if not self.is_child_run(event):
                self.parent_model_run_ids.add(event.run_id)

    def is_child_run(self, event: GraphEvent) -> bool:
        """True when any ancestor of the event is a delegation tool invocation."""
        return any(parent in self.child_agent_run_ids for parent in event.parent_ids)

    def owns_model(self, run_id: str) -> bool:
        return run_id in self.parent_model_run_ids

    def owns_tool(self, event: GraphEvent) -> bool:
        """True for tool events produced by this run's own tool step."""
        return event.parent_id in self.parent_tool_node_run_ids

    def release_model(self, run_id: str) -> None:
        """Drop a model call once its usage has been accounted for."""
        self.parent_model_run_ids.discard(run_id)

    def __repr__(self) -> str:
        return (
            f"RunAttributionTracker(children={len(self.child_agent_run_ids)}, "
            f"tool_nodes={len(self.parent_tool_node_run_ids)}, "
            f"models={len(self.parent_model_run_ids)})"
        )


__all__ = ["RunAttributionTracker"]
