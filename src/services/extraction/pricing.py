"""Static per-model pricing and cost estimation.

Rates are USD per 1,000 tokens. Unknown models are priced at zero rather than
rejected so an unpriced model never fails an otherwise successful extraction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.config import get_settings


logger = logging.getLogger(__name__)

# When only a total is reported, assume this share of it was input
TOTAL_TOKENS_INPUT_SHARE = 0.6
COST_DECIMALS = 6


@dataclass(frozen=True, slots=True)
class ModelPricing:
    """Rates for one model."""

    input_per_1k: float
    output_per_1k: float
    vision_multiplier: float = 1.0


MODEL_PRICING: dict[str, ModelPricing] = {
    "gpt-4-vision-preview": ModelPricing(0.01, 0.03, vision_multiplier=1.2),
    "gpt-4o-mini": ModelPricing(0.005, 0.015),
    "gpt-4o": ModelPricing(0.01, 0.03),
    "gemini-2.0-flash": ModelPricing(0.0001, 0.0004),
    "gemini-2.5-flash": ModelPricing(0.0003, 0.0025),
}


def estimate_cost(
    model_id: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    total_tokens: int | None = None,
    has_vision: bool = False,
) -> float:
    """Estimate the USD cost of a single model call.

    Args:
        model_id: Model identifier as sent to the provider.
        input_tokens: Prompt tokens reported by the provider.
        output_tokens: Completion tokens reported by the provider.
        total_tokens: Used only when neither input nor output is known; split
            60/40 between input and output.
        has_vision: Apply the model's vision multiplier to the final cost.

    Returns:
        Cost rounded to 6 decimal places; 0.0 for unpriced models.
    """
    pricing = MODEL_PRICING.get(model_id)
    if pricing is None:
        logger.debug(f"No pricing for model {model_id!r}; cost reported as 0")
        return 0.0

    prompt_tokens: float = input_tokens
    completion_tokens: float = output_tokens
    if not input_tokens and not output_tokens and total_tokens:
        # fractional split, not rounded to whole tokens
        prompt_tokens = total_tokens * TOTAL_TOKENS_INPUT_SHARE
        completion_tokens = total_tokens * (1 - TOTAL_TOKENS_INPUT_SHARE)

    cost = (prompt_tokens / 1000) * pricing.input_per_1k + (
        completion_tokens / 1000
    ) * pricing.output_per_1k
    if has_vision:
        cost *= pricing.vision_multiplier
    return round(cost, COST_DECIMALS)


def resolve_model(requested: str | None) -> str:
    """Return ``requested`` when it is a priced model, else the default model."""
    if requested and requested in MODEL_PRICING:
        return requested
    default_model = get_settings().DEFAULT_MODEL
    if requested:
        logger.info(
            f"Unsupported model {requested!r} requested; using {default_model!r}"
        )
    return default_model


def model_pricing_table() -> dict[str, ModelPricing]:
    """Copy of the pricing table, for listing supported models."""
    return dict(MODEL_PRICING)
