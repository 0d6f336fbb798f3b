"""
Text helpers shared by the runtime.

- remove_thinking_blocks: strip <think>...</think> reasoning segments
- extract_text_content: flatten string or content-block model output
- escape_attribute: escape a value for a double-quoted markup attribute
"""

import re
from typing import Any

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>")
# Orphaned </think> (provider never sent the opening tag): drop everything
# between the last closing tag (or start of text) and </think>.
_ORPHAN_THINK = re.compile(r"(^|</[a-zA-Z][a-zA-Z0-9]*\s*>)[\s\S]*?</think>")


def remove_thinking_blocks(text: str) -> str:
    """Remove reasoning segments from text that is fed back to a model."""
    result = _THINK_BLOCK.sub("", text)
    if "</think>" in result:
        result = _ORPHAN_THINK.sub(r"\1", result)
    return result.strip()


def extract_text_content(content: Any) -> str:
    """
    Extract text from model output content.

    OpenAI-style providers stream plain strings; Anthropic-style providers
    stream lists of typed blocks. Thinking blocks are wrapped in <think> tags
    so the consumer can render them separately.
    """
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    text = ""
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type in ("text", "text_delta") and block.get("text"):
            text += block["text"]
        elif block_type in ("thinking", "thinking_delta") and block.get("thinking"):
            text += f"<think>{block['thinking']}</think>"
        elif block_type == "reasoning" and block.get("reasoning"):
            text += f"<think>{block['reasoning']}</think>"
    return text


def escape_attribute(value: Any) -> str:
    return (
        str(value)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def unescape_attribute(value: str) -> str:
    return (
        value.replace("&quot;", '"')
        .replace("&gt;", ">")
        .replace("&lt;", "<")
        .replace("&amp;", "&")
    )


def truncate(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit]


__all__ = [
    "escape_attribute",
    "extract_text_content",
    "remove_thinking_blocks",
    "truncate",
    "unescape_attribute",
]
