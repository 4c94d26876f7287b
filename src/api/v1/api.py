from fastapi import APIRouter

from .analytics import router as analytics_router
from .discoveries import router as discoveries_router
from .extract import router as extract_router
from .health import router as health_router
from .models import router as models_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(extract_router)
api_router.include_router(discoveries_router)
api_router.include_router(analytics_router)
api_router.include_router(models_router)
