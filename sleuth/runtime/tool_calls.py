"""
Tool call lifecycle tracking.

started() registers a live ToolCallRecord and returns the initial markup
fragment; ended() evicts the record and returns the MarkupPatch that moves
the fragment to its terminal status. The fragment itself is never
re-emitted.
"""

from typing import Any, Mapping

from sleuth.domain import ToolCallRecord, ToolCallStatus
from sleuth.runtime.markup import MarkupPatch
from sleuth.utils.content import escape_attribute, truncate

DEEP_RESEARCH_TOOL_NAME = "deep_research"
TODO_LIST_TOOL_NAME = "todo_list"
YOUTUBE_TRANSCRIPT_TOOL_NAME = "youtube_transcript"

# Tools that spawn a child run
DELEGATION_TOOL_NAMES = frozenset({DEEP_RESEARCH_TOOL_NAME})

# Tools with their own event types, kept out of generic ToolCall markup
SUPPRESSED_TOOL_NAMES = frozenset({DEEP_RESEARCH_TOOL_NAME, TODO_LIST_TOOL_NAME})


class ToolCallTracker:
    """Live tool calls of one run, keyed by call id."""

    def __init__(
        self,
        error_max_chars: int | None = None,
        query_max_chars: int | None = None,
        url_max_chars: int | None = None,
    ):
        from sleuth.config import settings

        self.error_max_chars = error_max_chars or settings.tool_error_max_chars
        self.query_max_chars = query_max_chars or settings.query_attr_max_chars
        self.url_max_chars = url_max_chars or settings.url_attr_max_chars
        self._records: dict[str, ToolCallRecord] = {}

    def started(self, call_id: str, tool_name: str, tool_input: Mapping[str, Any] | None) -> str:
        """Register a running call and return its initial markup fragment."""
        self._records[call_id] = ToolCallRecord(call_id=call_id, tool_name=tool_name)

        attrs = (
            f'<ToolCall type="{escape_attribute(tool_name.strip())}" status="running" '
            f'toolCallId="{escape_attribute(call_id)}"'
        )
        attrs += self._input_attributes(tool_input or {})
        return attrs + "></ToolCall>"

    def ended(
        self,
        call_id: str,
        status: ToolCallStatus,
        error: str | None = None,
        extra: dict[str, str] | None = None,
    ) -> MarkupPatch | None:
        """
        Finish a call and return the patch for its fragment.

        Unknown call ids (never started, or already ended) return None.
        """
        record = self._records.pop(call_id, None)
        if record is None:
            return None

        record.status = ToolCallStatus(status)
        if record.status == ToolCallStatus.ERROR:
            record.error = truncate(error or "Unknown tool error", self.error_max_chars)
        record.extra = extra or None

        return MarkupPatch(
            target_id=call_id,
            status=record.status.value,
            error=record.error,
            extra=record.extra,
        )

    def get(self, call_id: str) -> ToolCallRecord | None:
        return self._records.get(call_id)

    @property
    def active(self) -> list[ToolCallRecord]:
        return list(self._records.values())

    def _input_attributes(self, tool_input: Mapping[str, Any]) -> str:
        # Lightweight identifying arguments only
        extra = ""
        query = tool_input.get("query")
        if isinstance(query, str):
            extra += f' query="{escape_attribute(query[: self.query_max_chars])}"'
        urls = tool_input.get("urls")
        if isinstance(urls, list):
            extra += f' count="{len(urls)}"'
        url = tool_input.get("url")
        if not isinstance(url, str):
            url = tool_input.get("pdfUrl")
        if isinstance(url, str):
            extra += f' url="{escape_attribute(url[: self.url_max_chars])}"'
        return extra


__all__ = [
    "DEEP_RESEARCH_TOOL_NAME",
    "DELEGATION_TOOL_NAMES",
    "SUPPRESSED_TOOL_NAMES",
    "TODO_LIST_TOOL_NAME",
    "ToolCallTracker",
    "YOUTUBE_TRANSCRIPT_TOOL_NAME",
]
