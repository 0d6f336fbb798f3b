"""
Two-model token usage ledger.
"""

from typing import Any

from sleuth.domain import TokenUsage, UsageSnapshot, UsageTarget
from sleuth.llm.usage import normalize_usage
from sleuth.utils.logging import get_logger

logger = get_logger(__name__)

# Names tools use when reporting which model they called
_TARGET_ALIASES = {
    "primary": UsageTarget.PRIMARY,
    "chat": UsageTarget.PRIMARY,
    "auxiliary": UsageTarget.AUXILIARY,
    "system": UsageTarget.AUXILIARY,
}


def resolve_target(target: UsageTarget | str) -> UsageTarget:
    if isinstance(target, UsageTarget):
        return target
    try:
        return _TARGET_ALIASES[str(target).lower()]
    except KeyError:
        raise ValueError(f"Unknown usage target: {target!r}") from None


class TokenUsageLedger:
    """
    Primary and auxiliary token accumulators.

    Only ever adds: negative counts are clamped to zero, so successive
    snapshots are non-decreasing field by field.
    """

    def __init__(self, primary_model: str | None = None, auxiliary_model: str | None = None):
        self.primary_model = primary_model
        self.auxiliary_model = auxiliary_model
        self._usage = {
            UsageTarget.PRIMARY: TokenUsage(),
            UsageTarget.AUXILIARY: TokenUsage(),
        }

    def apply(self, target: UsageTarget | str, usage: Any) -> UsageSnapshot:
        """Add a usage report (provider dict or TokenUsage) and return the new snapshot."""
        resolved = resolve_target(target)
        delta = normalize_usage(usage)
        self._usage[resolved] = self._usage[resolved].plus(delta)
        logger.debug(
            "usage_applied",
            target=resolved.value,
            input_tokens=delta.input_tokens,
            output_tokens=delta.output_tokens,
            total_tokens=delta.total_tokens,
        )
        return self.snapshot()

    def snapshot(self) -> UsageSnapshot:
        primary = self._usage[UsageTarget.PRIMARY]
        auxiliary = self._usage[UsageTarget.AUXILIARY]
        return UsageSnapshot(
            primary=primary.model_copy(),
            auxiliary=auxiliary.model_copy(),
            combined_total=primary.total_tokens + auxiliary.total_tokens,
            primary_model=self.primary_model,
            auxiliary_model=self.auxiliary_model,
        )


__all__ = ["TokenUsageLedger", "resolve_target"]
