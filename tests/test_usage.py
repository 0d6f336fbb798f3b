"""
Tests for usage normalization and the two-model ledger.
"""

import pytest

from sleuth.domain import TokenUsage, UsageTarget
from sleuth.llm import normalize_usage
from sleuth.runtime import TokenUsageLedger
from sleuth.runtime.ledger import resolve_target


class TestNormalizeUsage:
    def test_openai_field_names(self):
        usage = normalize_usage({"prompt_tokens": 12, "completion_tokens": 8, "total_tokens": 20})
        assert usage == TokenUsage(input_tokens=12, output_tokens=8, total_tokens=20)

    def test_anthropic_field_names_derive_total(self):
        usage = normalize_usage({"input_tokens": 10, "output_tokens": 4})
        assert usage.total_tokens == 14

    def test_camel_case_field_names(self):
        usage = normalize_usage({"promptTokens": 3, "completionTokens": 2, "totalTokens": 5})
        assert usage == TokenUsage(input_tokens=3, output_tokens=2, total_tokens=5)

    def test_used_tokens_only(self):
        usage = normalize_usage({"usedTokens": 42})
        assert usage.input_tokens == 42
        assert usage.total_tokens == 42

    def test_zero_falls_through_to_next_alias(self):
        usage = normalize_usage({"input_tokens": 0, "prompt_tokens": 7})
        assert usage.input_tokens == 7

    def test_unknown_field_names_report_zero(self):
        usage = normalize_usage({"tokens_in": 100, "tokens_out": 50})
        assert usage.is_empty()

    def test_none_and_token_usage_passthrough(self):
        assert normalize_usage(None).is_empty()
        original = TokenUsage(input_tokens=1, output_tokens=2, total_tokens=3)
        assert normalize_usage(original) == original


class TestLedger:
    def test_apply_primary_and_auxiliary(self):
        ledger = TokenUsageLedger(primary_model="chat", auxiliary_model="system")
        ledger.apply(UsageTarget.PRIMARY, {"input_tokens": 10, "output_tokens": 4})
        snapshot = ledger.apply("auxiliary", {"prompt_tokens": 5, "completion_tokens": 1})

        assert snapshot.primary.total_tokens == 14
        assert snapshot.auxiliary.total_tokens == 6
        assert snapshot.combined_total == 20
        assert snapshot.primary_model == "chat"
        assert snapshot.auxiliary_model == "system"

    def test_combined_total_identity_and_monotonicity(self):
        ledger = TokenUsageLedger()
        reports = [
            ("primary", {"input_tokens": 3, "output_tokens": 2}),
            ("system", {"total_tokens": 9}),
            ("chat", {"input_tokens": -50, "output_tokens": 1}),
            ("auxiliary", {}),
        ]
        previous = ledger.snapshot()
        for target, usage in reports:
            snapshot = ledger.apply(target, usage)
            assert snapshot.combined_total == (
                snapshot.primary.total_tokens + snapshot.auxiliary.total_tokens
            )
            for side in ("primary", "auxiliary"):
                before, after = getattr(previous, side), getattr(snapshot, side)
                assert after.input_tokens >= before.input_tokens
                assert after.output_tokens >= before.output_tokens
                assert after.total_tokens >= before.total_tokens
            previous = snapshot

    def test_negative_token_usage_is_clamped(self):
        ledger = TokenUsageLedger()
        ledger.apply("primary", {"input_tokens": 5})
        snapshot = ledger.apply("primary", TokenUsage(input_tokens=-3, total_tokens=-3))
        assert snapshot.primary.input_tokens == 5

    def test_snapshot_is_a_copy(self):
        ledger = TokenUsageLedger()
        snapshot = ledger.apply("primary", {"input_tokens": 1, "output_tokens": 1})
        ledger.apply("primary", {"input_tokens": 1, "output_tokens": 1})
        assert snapshot.primary.total_tokens == 2

    def test_target_aliases(self):
        assert resolve_target("chat") == UsageTarget.PRIMARY
        assert resolve_target("SYSTEM") == UsageTarget.AUXILIARY
        with pytest.raises(ValueError):
            resolve_target("embeddings")

    def test_snapshot_serializes_camel_case(self):
        ledger = TokenUsageLedger()
        ledger.apply("primary", {"input_tokens": 2, "output_tokens": 2})
        payload = ledger.snapshot().model_dump(by_alias=True)
        assert payload["combinedTotal"] == 4
        assert "primaryModel" in payload
