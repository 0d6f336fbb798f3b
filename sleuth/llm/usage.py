"""
Provider usage normalization.

Providers report token usage under different names:

- OpenAI: prompt_tokens / completion_tokens / total_tokens
- Anthropic: input_tokens / output_tokens
- JS-style adapters: promptTokens / completionTokens / totalTokens
- Some gateways only report a single usedTokens figure

normalize_usage() maps all of these onto TokenUsage. Field names it does
not know report zero.
"""

from typing import Any, Mapping

from sleuth.domain.models import TokenUsage

_INPUT_KEYS = ("input_tokens", "prompt_tokens", "promptTokens", "usedTokens")
_OUTPUT_KEYS = ("output_tokens", "completion_tokens", "completionTokens")
_TOTAL_KEYS = ("total_tokens", "totalTokens", "usedTokens")


def _first_count(raw: Mapping[str, Any], keys: tuple[str, ...]) -> int | None:
    for key in keys:
        value = raw.get(key)
        if not value:
            continue
        try:
            count = int(value)
        except (TypeError, ValueError):
            continue
        # Zero means "not reported" here; keep looking at the next alias.
        if count > 0:
            return count
    return None


def normalize_usage(raw: Mapping[str, Any] | TokenUsage | None) -> TokenUsage:
    """
    Normalize a provider usage payload.

    total_tokens falls back to input + output when the provider omits it.
    """
    if raw is None:
        return TokenUsage()
    if isinstance(raw, TokenUsage):
        return raw
    if not isinstance(raw, Mapping):
        raw = getattr(raw, "__dict__", {}) or {}

    input_tokens = _first_count(raw, _INPUT_KEYS) or 0
    output_tokens = _first_count(raw, _OUTPUT_KEYS) or 0
    total = _first_count(raw, _TOTAL_KEYS)
    if total is None:
        total = input_tokens + output_tokens

    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total,
    )


__all__ = ["normalize_usage"]
