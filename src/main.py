import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html

from api.v1.api import api_router
from core.config import get_settings
from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from core.exceptions import DomainError
from core.middleware import CorrelationIdMiddleware
from core.scheduler import scheduler_lifespan
from services.analytics import InMemoryAnalyticsSink
from services.discovery import DiscoveryAggregator
from services.extraction.agents import PydanticAIVisionModel
from services.extraction.orchestrator import ExtractionOrchestrator
from services.jobs.scheduler import ExtractionScheduler
from services.jobs.store import JobStore


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the in-memory services, run housekeeping, and stop the worker."""
    settings = get_settings()
    setup_logging()

    vision_model = PydanticAIVisionModel()
    discovery_aggregator = DiscoveryAggregator()
    analytics_sink = InMemoryAnalyticsSink()
    job_scheduler = ExtractionScheduler(
        ExtractionOrchestrator(
            vision_model,
            discovery_sink=discovery_aggregator,
            analytics_sink=analytics_sink,
        ),
        JobStore(),
    )

    app.state.job_scheduler = job_scheduler
    app.state.discovery_aggregator = discovery_aggregator
    app.state.analytics_sink = analytics_sink

    logger.info(f"{settings.APP_NAME} starting ({settings.ENVIRONMENT})")
    try:
        async with scheduler_lifespan(job_scheduler):
            yield
    finally:
        await job_scheduler.shutdown(cancel=not settings.SHUTDOWN_DRAIN_JOBS)
        await vision_model.aclose()
        logger.info(f"{settings.APP_NAME} stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.APP_NAME,
        description="Garment attribute extraction from images with vision models",
        version="0.1.0",
        docs_url=None,  # We'll mount docs under /api/v1/docs
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    app.add_exception_handler(DomainError, global_exception_handler)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    # Mount OpenAPI docs under /api/v1/docs and /api/v1/redoc
    @app.get("/api/v1/docs", include_in_schema=False)
    def custom_swagger_ui_html():
        return get_swagger_ui_html(
            openapi_url="/openapi.json", title=f"{settings.APP_NAME} Docs"
        )

    @app.get("/api/v1/redoc", include_in_schema=False)
    def redoc_html():
        return get_redoc_html(
            openapi_url="/openapi.json", title=f"{settings.APP_NAME} Redoc"
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
