"""Shared helpers: logging, retries, text content utilities."""

from sleuth.utils.content import (
    escape_attribute,
    extract_text_content,
    remove_thinking_blocks,
    truncate,
)
from sleuth.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "escape_attribute",
    "extract_text_content",
    "get_logger",
    "remove_thinking_blocks",
    "truncate",
]
