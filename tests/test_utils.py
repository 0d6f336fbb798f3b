"""
Tests for the text helpers and the logging processors.
"""

from sleuth.utils.content import (
    escape_attribute,
    extract_text_content,
    remove_thinking_blocks,
    truncate,
    unescape_attribute,
)
from sleuth.utils.logging import REDACTED, filter_sensitive_data, get_logger


class TestRemoveThinkingBlocks:
    def test_complete_block(self):
        assert remove_thinking_blocks("<think>plan</think>Answer") == "Answer"

    def test_multiple_blocks(self):
        text = "<think>a</think>First <think>b</think>second"
        assert remove_thinking_blocks(text) == "First second"

    def test_orphaned_closing_tag(self):
        assert remove_thinking_blocks("reasoning without opener</think>Answer") == "Answer"

    def test_plain_text_untouched(self):
        assert remove_thinking_blocks("  no reasoning here ") == "no reasoning here"


class TestExtractTextContent:
    def test_string(self):
        assert extract_text_content("hello") == "hello"

    def test_blocks(self):
        blocks = [
            {"type": "thinking", "thinking": "hmm"},
            {"type": "text", "text": "Hi"},
            {"type": "tool_use", "id": "x"},
        ]
        assert extract_text_content(blocks) == "<think>hmm</think>Hi"

    def test_empty_and_unknown(self):
        assert extract_text_content(None) == ""
        assert extract_text_content({"text": "x"}) == ""


def test_attribute_escaping_round_trip():
    raw = 'say "hi" & <go>'
    escaped = escape_attribute(raw)
    assert escaped == "say &quot;hi&quot; &amp; &lt;go&gt;"
    assert unescape_attribute(escaped) == raw


def test_truncate():
    assert truncate("abcdef", 3) == "abc"
    assert truncate("abc", 10) == "abc"
    assert truncate("abc", 0) == ""


class TestFilterSensitiveData:
    def test_redacts_credentials(self):
        event = {"event": "model_created", "api_key": "sk-123", "Authorization": "Bearer x"}
        result = filter_sensitive_data(None, "info", event)
        assert result["api_key"] == REDACTED
        assert result["Authorization"] == REDACTED
        assert result["event"] == "model_created"


def test_get_logger_returns_bound_logger():
    logger = get_logger("sleuth.test")
    logger.info("test_event", run_id="run_1")
