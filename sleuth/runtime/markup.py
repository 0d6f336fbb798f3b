"""
Markup document model.

The accumulated markup document is the persisted superset of a response:
plain text interleaved with tagged blocks such as

    <ToolCall type="web_search" status="running" toolCallId="call_1"></ToolCall>
    <SubagentExecution id="subagent_1" name="Deep Research" task="..." status="running">
    ...nested ToolCall blocks...
    </SubagentExecution>

It is kept as a list of spans (TextSpan / TagSpan, tags holding children)
with an id index, so "find block by id and patch it" is a dictionary lookup
at any nesting depth and never re-scans text. Attribute values are stored in
their escaped form; untouched attributes render byte-identical.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Union

from sleuth.utils.content import escape_attribute, unescape_attribute

_TAG = re.compile(r"<(/?)([A-Za-z][\w-]*)((?:\s+[\w:-]+=\"[^\"]*\")*)\s*>")
_ATTR = re.compile(r"([\w:-]+)=\"([^\"]*)\"")

# Attributes that identify a tagged block
ID_ATTRIBUTES = ("id", "toolCallId")


@dataclass
class TextSpan:
    text: str

    def render(self) -> str:
        return self.text


@dataclass
class TagSpan:
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)  # escaped values
    children: list["Span"] = field(default_factory=list)

    @property
    def block_id(self) -> str | None:
        for name in ID_ATTRIBUTES:
            if name in self.attrs:
                return unescape_attribute(self.attrs[name])
        return None

    def get(self, name: str) -> str | None:
        raw = self.attrs.get(name)
        return None if raw is None else unescape_attribute(raw)

    def set(self, name: str, value: Any) -> None:
        self.attrs[name] = escape_attribute(value)

    def render(self) -> str:
        attrs = "".join(f' {name}="{value}"' for name, value in self.attrs.items())
        inner = "".join(child.render() for child in self.children)
        return f"<{self.tag}{attrs}>{inner}</{self.tag}>"


Span = Union[TextSpan, TagSpan]


@dataclass(frozen=True)
class MarkupPatch:
    """
    In-place update of one tagged block.

    Attributes:
        target_id: id / toolCallId of the block to update
        status: New status attribute
        error: Error text (set as the ``error`` attribute)
        extra: Extra metadata, serialized to JSON in the ``extra`` attribute
            when non-empty
        attrs: Any further attributes to set (summary, ...)
    """

    target_id: str
    status: str | None = None
    error: str | None = None
    extra: dict[str, Any] | None = None
    attrs: dict[str, str] = field(default_factory=dict)


class MarkupDocument:
    """Indexed span document. See module docstring."""

    def __init__(self, spans: list[Span] | None = None):
        self.spans: list[Span] = []
        self._index: dict[str, TagSpan] = {}
        for span in spans or ():
            self._append(self.spans, span)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_fragment(fragment: str) -> list[Span] | None:
        """
        Parse a self-contained fragment into spans.

        Returns None when the fragment is not well formed (unbalanced or
        mismatched tags).
        """
        root: list[Span] = []
        stack: list[TagSpan] = []
        pos = 0

        def target() -> list[Span]:
            return stack[-1].children if stack else root

        for match in _TAG.finditer(fragment):
            if match.start() > pos:
                target().append(TextSpan(fragment[pos : match.start()]))
            closing, tag, raw_attrs = match.group(1), match.group(2), match.group(3)
            if closing:
                if not stack or stack[-1].tag != tag:
                    return None
                span = stack.pop()
                target().append(span)
            else:
                stack.append(TagSpan(tag=tag, attrs=dict(_ATTR.findall(raw_attrs))))
            pos = match.end()

        if stack:
            return None
        if pos < len(fragment):
            root.append(TextSpan(fragment[pos:]))
        return root

    @classmethod
    def parse(cls, text: str) -> "MarkupDocument":
        """Load a rendered document; malformed markup is kept as plain text."""
        spans = cls.parse_fragment(text)
        return cls(spans if spans is not None else [TextSpan(text)])

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append_text(self, text: str, parent_id: str | None = None) -> None:
        if text:
            self._append(self._container(parent_id), TextSpan(text))

    def append_fragment(self, fragment: str, parent_id: str | None = None) -> bool:
        """
        Append a markup fragment, inside block ``parent_id`` when given.

        Returns False when the fragment could not be parsed and was appended
        verbatim as text instead.
        """
        container = self._container(parent_id)
        spans = self.parse_fragment(fragment)
        if spans is None:
            self._append(container, TextSpan(fragment))
            return False
        for span in spans:
            self._append(container, span)
        return True

    def apply(self, patch: MarkupPatch) -> bool:
        """
        Apply a patch to the block it targets.

        Returns False, leaving the document unchanged, when no block has
        that id. Applying the same patch twice yields the same document.
        """
        span = self._index.get(patch.target_id)
        if span is None:
            return False
        if patch.status is not None:
            span.set("status", patch.status)
        if patch.error is not None:
            span.set("error", patch.error)
        if patch.extra:
            span.set("extra", json.dumps(patch.extra, ensure_ascii=False))
        for name, value in patch.attrs.items():
            span.set(name, value)
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, block_id: str) -> TagSpan | None:
        return self._index.get(block_id)

    def __contains__(self, block_id: str) -> bool:
        return block_id in self._index

    def render(self) -> str:
        return "".join(span.render() for span in self.spans)

    def __str__(self) -> str:
        return self.render()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _container(self, parent_id: str | None) -> list[Span]:
        if parent_id is None:
            return self.spans
        parent = self._index.get(parent_id)
        return parent.children if parent is not None else self.spans

    def _append(self, container: list[Span], span: Span) -> None:
        if isinstance(span, TextSpan):
            if container and isinstance(container[-1], TextSpan):
                container[-1].text += span.text
            else:
                container.append(TextSpan(span.text))
            return
        container.append(span)
        self._register(span)

    def _register(self, span: TagSpan) -> None:
        block_id = span.block_id
        # First block wins; a later duplicate id is rendered but not indexed.
        if block_id is not None and block_id not in self._index:
            self._index[block_id] = span
        for child in span.children:
            if isinstance(child, TagSpan):
                self._register(child)


__all__ = ["MarkupDocument", "MarkupPatch", "TagSpan", "TextSpan"]
