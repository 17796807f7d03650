"""Tests for the pricing table."""

import pytest

from claude_wrapped.models import ModelUsage
from claude_wrapped.pricing import (
    DEFAULT_PRICING,
    MODEL_PRICING,
    calculate_cost,
    calculate_total_cost,
    get_model_display_name,
    get_model_pricing,
)


class TestGetModelPricing:
    def test_exact_match(self):
        assert get_model_pricing("claude-3-5-haiku-20241022") is MODEL_PRICING["claude-3-5-haiku-20241022"]

    @pytest.mark.parametrize(
        "model_id, expected_key",
        [
            ("claude-opus-4-1-20250805", "claude-opus-4-20250514"),
            ("Claude-OPUS4-preview", "claude-opus-4-20250514"),
            ("claude-sonnet-4-6", "claude-sonnet-4-20250514"),
            ("claude-opus-next", "claude-3-opus-20240229"),
            ("claude-3-5-haiku-latest", "claude-3-5-haiku-20241022"),
            ("claude-haiku-x", "claude-3-haiku-20240307"),
            ("claude-sonnet-x", "claude-3-5-sonnet-20241022"),
        ],
    )
    def test_family_rules(self, model_id, expected_key):
        assert get_model_pricing(model_id) == MODEL_PRICING[expected_key]

    def test_unknown_model_gets_default(self):
        assert get_model_pricing("gpt-4o") == DEFAULT_PRICING
        assert get_model_pricing("") == DEFAULT_PRICING

    def test_opus_4_rule_wins_over_plain_opus(self):
        assert get_model_pricing("opus-4-something").output_per_million == 75.0


class TestCalculateCost:
    def test_linear_combination(self):
        cost = calculate_cost("claude-sonnet-4-20250514", 1_000_000, 1_000_000, 1_000_000, 1_000_000)
        assert cost == pytest.approx(3.0 + 15.0 + 3.75 + 0.3)

    def test_zero_tokens(self):
        assert calculate_cost("claude-opus-4-20250514", 0, 0) == 0

    def test_total_cost_prefers_recorded_cost(self):
        usage = {
            "claude-opus-4-20250514": ModelUsage(output_tokens=1_000_000, cost_usd=1.25),
            "claude-sonnet-4-20250514": ModelUsage(input_tokens=2_000_000),
        }
        assert calculate_total_cost(usage) == pytest.approx(1.25 + 6.0)

    def test_total_cost_empty(self):
        assert calculate_total_cost({}) == 0


class TestDisplayName:
    @pytest.mark.parametrize(
        "model_id, name",
        [
            ("claude-opus-4-5-20251101", "Claude Opus 4.5"),
            ("claude-sonnet-4-20250514", "Claude Sonnet 4"),
            ("claude-3-5-sonnet-20241022", "Claude Sonnet 3.5"),
            ("claude-3-haiku-20240307", "Claude Haiku 3"),
            ("<synthetic>", "<synthetic>"),
        ],
    )
    def test_names(self, model_id, name):
        assert get_model_display_name(model_id) == name
