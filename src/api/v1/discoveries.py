"""Discovery listing, promotion and reset endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter

from core.config import get_settings
from core.exceptions import DiscoveryNotPromotableError
from dependencies.state import DiscoveryAggregatorDep
from schemas.api import ApiResponse
from schemas.discovery import (
    DiscoveryListResponse,
    DiscoverySessionStats,
    DiscoverySettings,
    PromoteDiscoveryRequest,
    SchemaFieldDraft,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discoveries", tags=["discoveries"])


@router.get("", response_model=ApiResponse[DiscoveryListResponse])
async def list_discoveries(
    aggregator: DiscoveryAggregatorDep,
    category_id: str | None = None,
    promotable: bool = False,
) -> ApiResponse[DiscoveryListResponse]:
    """List discoveries, best first, optionally scoped to one category."""
    discoveries = aggregator.list(category_id)
    if promotable:
        promotable_keys = {d.key for d in aggregator.promotable()}
        discoveries = [d for d in discoveries if d.key in promotable_keys]

    return ApiResponse(
        data=DiscoveryListResponse(
            discoveries=discoveries,
            stats=aggregator.stats(category_id),
            settings=DiscoverySettings(enabled=get_settings().DISCOVERY_ENABLED),
        )
    )


@router.get("/session", response_model=ApiResponse[DiscoverySessionStats])
async def get_session_stats(
    aggregator: DiscoveryAggregatorDep,
) -> ApiResponse[DiscoverySessionStats]:
    return ApiResponse(data=aggregator.session_stats())


@router.post("/promote", response_model=ApiResponse[SchemaFieldDraft])
async def promote_discovery(
    request: PromoteDiscoveryRequest, aggregator: DiscoveryAggregatorDep
) -> ApiResponse[SchemaFieldDraft]:
    """Turn a promotable discovery into a draft field for a category schema.

    The draft is returned for the caller to persist; the discovery stays in
    the aggregator.
    """
    draft = aggregator.promote(request.discovery_key)
    if draft is None:
        raise DiscoveryNotPromotableError(
            f"Discovery {request.discovery_key!r} not found or not promotable"
        )

    overrides: dict[str, object] = {}
    if request.label:
        overrides["label"] = request.label
    if request.type and request.type != draft.type:
        overrides["type"] = request.type
        if request.type != "select":
            overrides["options"] = None
        else:
            discovery = aggregator.get(request.discovery_key)
            overrides["options"] = list(discovery.possible_values) if discovery else []
    if overrides:
        draft = draft.model_copy(update=overrides)

    logger.info(
        f"Discovery {request.discovery_key!r} promoted for category "
        f"{request.category_id}"
    )
    return ApiResponse(data=draft, message="Discovery promoted to schema draft")


@router.delete("", response_model=ApiResponse[None])
async def clear_discoveries(aggregator: DiscoveryAggregatorDep) -> ApiResponse[None]:
    aggregator.clear()
    return ApiResponse(message="Discoveries cleared")
