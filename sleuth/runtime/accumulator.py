"""
MessageAccumulator - folds a run's outward events into the persisted message.

This is the consumer side of the markup protocol: tool_call_started appends
a fragment, tool_call_success/error patch it in place, subagent blocks are
appended on subagent_started and nested tool calls go inside them.
"""

from sleuth.domain import Document, EventType, StreamEvent, UsageSnapshot
from sleuth.runtime.markup import MarkupDocument, MarkupPatch
from sleuth.utils.content import escape_attribute


def subagent_markup(execution_id: str, name: str, task: str) -> str:
    """Initial SubagentExecution block appended on subagent_started."""
    return (
        f'<SubagentExecution id="{escape_attribute(execution_id)}" '
        f'name="{escape_attribute(name)}" task="{escape_attribute(task)}" '
        f'status="running"></SubagentExecution>\n'
    )


class MessageAccumulator:
    """
    Accumulated markup document of one run, plus the latest sources and stats.

    Events that cannot be applied (patch for an unknown block, subagent data
    for an unknown execution) leave the document unchanged.
    """

    def __init__(self):
        self.document = MarkupDocument()
        self.response = ""
        self.sources: list[Document] = []
        self.stats: UsageSnapshot | None = None

    def feed(self, event: StreamEvent) -> None:
        etype = event.type

        if etype == EventType.RESPONSE:
            text = event.data or ""
            self.response += text
            self.document.append_text(text)

        elif etype == EventType.TOOL_CALL_STARTED:
            if event.content:
                self.document.append_fragment(event.content)

        elif etype in (EventType.TOOL_CALL_SUCCESS, EventType.TOOL_CALL_ERROR):
            self.document.apply(self._tool_patch(event))

        elif etype == EventType.SUBAGENT_STARTED:
            self.document.append_fragment(
                subagent_markup(event.execution_id or "", event.name or "", event.task or "")
            )

        elif etype == EventType.SUBAGENT_DATA:
            self._feed_nested(event)

        elif etype == EventType.SUBAGENT_COMPLETED:
            attrs = {"summary": event.summary} if event.summary else {}
            self.document.apply(MarkupPatch(target_id=event.id or "", status="success", attrs=attrs))

        elif etype == EventType.SUBAGENT_ERROR:
            self.document.apply(
                MarkupPatch(target_id=event.id or "", status="error", error=event.error)
            )

        elif etype in (EventType.SOURCES, EventType.SOURCES_ADDED):
            self.sources = list(event.data or [])

        elif etype == EventType.STATS:
            self.stats = event.data

    def _feed_nested(self, envelope: StreamEvent) -> None:
        inner = envelope.data
        if not isinstance(inner, StreamEvent) or envelope.subagent_id not in self.document:
            return
        if inner.type == EventType.TOOL_CALL_STARTED and inner.content:
            self.document.append_fragment(inner.content + "\n", parent_id=envelope.subagent_id)
        elif inner.type in (EventType.TOOL_CALL_SUCCESS, EventType.TOOL_CALL_ERROR):
            self.document.apply(self._tool_patch(inner))

    @staticmethod
    def _tool_patch(event: StreamEvent) -> MarkupPatch:
        is_error = event.type == EventType.TOOL_CALL_ERROR
        return MarkupPatch(
            target_id=event.tool_call_id or "",
            status="error" if is_error else "success",
            error=event.error if is_error else None,
            extra=event.extra,
        )

    @property
    def markup(self) -> str:
        return self.document.render()


__all__ = ["MessageAccumulator", "subagent_markup"]
