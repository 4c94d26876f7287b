from fastapi import APIRouter

from dependencies.state import AnalyticsSinkDep
from schemas.api import ApiResponse
from schemas.jobs import AnalyticsSummary


router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/summary", response_model=ApiResponse[AnalyticsSummary])
async def get_analytics_summary(
    analytics_sink: AnalyticsSinkDep,
) -> ApiResponse[AnalyticsSummary]:
    """Totals over every extraction recorded since startup."""
    return ApiResponse(data=analytics_sink.summary())
