"""Tests for the APScheduler housekeeping jobs."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from core import scheduler as core_scheduler
from core.scheduler import run_job_eviction, scheduler_lifespan, setup_scheduler


@pytest.mark.asyncio
async def test_run_job_eviction_uses_retention_window():
    job_scheduler = MagicMock()
    job_scheduler.evict_finished.return_value = 3

    await run_job_eviction(job_scheduler, retention_minutes=45)

    job_scheduler.evict_finished.assert_called_once_with(timedelta(minutes=45))


@pytest.mark.asyncio
async def test_run_job_eviction_logs_and_swallows_errors(caplog):
    job_scheduler = MagicMock()
    job_scheduler.evict_finished.side_effect = RuntimeError("store broken")

    await run_job_eviction(job_scheduler, retention_minutes=60)

    assert "Job eviction failed: store broken" in caplog.text


@pytest.mark.asyncio
async def test_setup_scheduler_registers_eviction_job():
    sched = setup_scheduler(MagicMock())

    job = sched.get_job("evict_finished_jobs")
    assert job is not None
    assert job.trigger.interval == timedelta(minutes=15)
    assert job.args[1] == 60


@pytest.mark.asyncio
async def test_scheduler_lifespan_starts_and_stops():
    async with scheduler_lifespan(MagicMock()):
        assert core_scheduler.scheduler is not None
        assert core_scheduler.scheduler.running

    assert not core_scheduler.scheduler.running
