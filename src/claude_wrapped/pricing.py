"""Model pricing for Claude models (USD per million tokens)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

from .models import ModelUsage


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token rates for one model."""

    input_per_million: float
    output_per_million: float
    cache_write_per_million: float
    cache_read_per_million: float


_OPUS = ModelPricing(15.0, 75.0, 18.75, 1.5)
_SONNET = ModelPricing(3.0, 15.0, 3.75, 0.3)
_HAIKU_3_5 = ModelPricing(0.8, 4.0, 1.0, 0.08)
_HAIKU_3 = ModelPricing(0.25, 1.25, 0.3, 0.03)

MODEL_PRICING = {
    # Claude 4
    "claude-opus-4-20250514": _OPUS,
    "claude-opus-4-5-20251101": _OPUS,
    "claude-sonnet-4-20250514": _SONNET,
    "claude-sonnet-4-5-20241022": _SONNET,
    # Claude 3.5
    "claude-3-5-sonnet-20241022": _SONNET,
    "claude-3-5-sonnet-20240620": _SONNET,
    "claude-3-5-haiku-20241022": _HAIKU_3_5,
    # Claude 3
    "claude-3-opus-20240229": _OPUS,
    "claude-3-sonnet-20240229": _SONNET,
    "claude-3-haiku-20240307": _HAIKU_3,
}

# Unknown models are priced like Sonnet
DEFAULT_PRICING = _SONNET


def get_model_pricing(model_id: str) -> ModelPricing:
    """Look up rates for a model id, falling back to family matching."""
    if model_id in MODEL_PRICING:
        return MODEL_PRICING[model_id]

    model_lower = model_id.lower()
    if "opus-4" in model_lower or "opus4" in model_lower:
        return MODEL_PRICING["claude-opus-4-20250514"]
    if "sonnet-4" in model_lower or "sonnet4" in model_lower:
        return MODEL_PRICING["claude-sonnet-4-20250514"]
    if "opus" in model_lower:
        return MODEL_PRICING["claude-3-opus-20240229"]
    if "haiku" in model_lower and "3-5" in model_lower:
        return MODEL_PRICING["claude-3-5-haiku-20241022"]
    if "haiku" in model_lower:
        return MODEL_PRICING["claude-3-haiku-20240307"]
    if "sonnet" in model_lower:
        return MODEL_PRICING["claude-3-5-sonnet-20241022"]

    return DEFAULT_PRICING


def calculate_cost(
    model_id: str,
    input_tokens: int,
    output_tokens: int,
    cache_write_tokens: int = 0,
    cache_read_tokens: int = 0,
) -> float:
    """Compute the USD cost of a token usage breakdown."""
    pricing = get_model_pricing(model_id)

    input_cost = (input_tokens / 1_000_000) * pricing.input_per_million
    output_cost = (output_tokens / 1_000_000) * pricing.output_per_million
    cache_write_cost = (cache_write_tokens / 1_000_000) * pricing.cache_write_per_million
    cache_read_cost = (cache_read_tokens / 1_000_000) * pricing.cache_read_per_million

    return input_cost + output_cost + cache_write_cost + cache_read_cost


def calculate_total_cost(model_usage: Mapping[str, ModelUsage]) -> float:
    """Sum costs across models, preferring the recorded cost when there is one."""
    total_cost = 0.0
    for model_id, usage in model_usage.items():
        if usage.cost_usd > 0:
            total_cost += usage.cost_usd
        else:
            total_cost += calculate_cost(
                model_id,
                usage.input_tokens,
                usage.output_tokens,
                usage.cache_creation_tokens,
                usage.cache_read_tokens,
            )
    return total_cost


_FAMILIES = ("opus", "sonnet", "haiku")
_DATE_SUFFIX = re.compile(r"^\d{8}$")


def get_model_display_name(model_id: str) -> str:
    """Turn an id like claude-opus-4-5-20251101 into 'Claude Opus 4.5'."""
    parts = [p for p in model_id.lower().split("-") if p and p != "claude"]
    family = next((p for p in parts if p in _FAMILIES), None)
    if family is None:
        return model_id

    version = [p for p in parts if p.isdigit() and not _DATE_SUFFIX.match(p)]
    name = f"Claude {family.capitalize()}"
    if version:
        name += " " + ".".join(version)
    return name
