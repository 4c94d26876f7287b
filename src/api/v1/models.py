from fastapi import APIRouter

from core.config import get_settings
from schemas.api import ApiResponse
from schemas.jobs import ModelPricingEntry
from services.extraction.pricing import model_pricing_table


router = APIRouter(tags=["models"])


@router.get("/models", response_model=ApiResponse[list[ModelPricingEntry]])
def list_models() -> ApiResponse[list[ModelPricingEntry]]:
    """Supported vision models with their per-1K token rates."""
    default_model = get_settings().DEFAULT_MODEL
    entries = [
        ModelPricingEntry(
            model_id=model_id,
            input_per_1k=pricing.input_per_1k,
            output_per_1k=pricing.output_per_1k,
            vision_multiplier=pricing.vision_multiplier,
            is_default=model_id == default_model,
        )
        for model_id, pricing in model_pricing_table().items()
    ]
    return ApiResponse(data=entries)
