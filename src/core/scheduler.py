"""Background task scheduler using APScheduler.

Manages scheduled housekeeping for the in-memory job store:
- Eviction of finished extraction jobs past the retention window
  (interval from JOB_EVICTION_INTERVAL_MINUTES, retention from
  JOB_RETENTION_MINUTES)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from apscheduler.schedulers.asyncio import (  # type: ignore[import-untyped]
    AsyncIOScheduler,
)
from apscheduler.triggers.interval import (  # type: ignore[import-untyped]
    IntervalTrigger,
)

from core.config import get_settings
from services.jobs.scheduler import ExtractionScheduler


logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None


async def run_job_eviction(
    job_scheduler: ExtractionScheduler, retention_minutes: int
) -> None:
    """Scheduled job: drop finished jobs older than the retention window."""
    try:
        evicted = job_scheduler.evict_finished(timedelta(minutes=retention_minutes))
        if evicted > 0:
            logger.info(f"Job eviction: {evicted} finished jobs removed")
    except Exception as e:
        logger.error(f"Job eviction failed: {e}", exc_info=True)


def setup_scheduler(job_scheduler: ExtractionScheduler) -> AsyncIOScheduler:
    """Initialize APScheduler with the job-eviction task."""
    global scheduler
    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        run_job_eviction,
        trigger=IntervalTrigger(minutes=settings.JOB_EVICTION_INTERVAL_MINUTES),
        args=[job_scheduler, settings.JOB_RETENTION_MINUTES],
        id="evict_finished_jobs",
        name="Finished extraction job eviction",
        replace_existing=True,
    )

    logger.info(
        "Scheduler configured: job eviction every "
        f"{settings.JOB_EVICTION_INTERVAL_MINUTES} min "
        f"(retention {settings.JOB_RETENTION_MINUTES} min)"
    )
    return scheduler


@asynccontextmanager
async def scheduler_lifespan(
    job_scheduler: ExtractionScheduler,
) -> AsyncGenerator[None, None]:
    """Context manager for scheduler lifecycle.

    Usage in FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with scheduler_lifespan(job_scheduler):
                yield
    """
    setup_scheduler(job_scheduler)
    if scheduler:
        scheduler.start()
        logger.info("Background scheduler started")
    try:
        yield
    finally:
        if scheduler and scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("Background scheduler shut down")
