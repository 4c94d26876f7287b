"""Single-worker extraction scheduler.

``submit`` only records the job and makes sure a worker task is running; it
never waits on an extraction. The worker drains the FIFO queue one job at a
time and exits when the queue is empty. A boolean guard keeps at most one
worker alive: submissions made while it runs are simply picked up by it.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import suppress
from datetime import UTC, datetime, timedelta

from core.exceptions import JobNotFoundError, JobNotRetryableError
from schemas.extraction import FailedExtraction
from schemas.jobs import QueueStatus
from services.extraction.orchestrator import ExtractionOrchestrator
from services.jobs.models import Job, JobInput, JobStatus
from services.jobs.store import JobStore


logger = logging.getLogger(__name__)


class ExtractionScheduler:
    def __init__(
        self, orchestrator: ExtractionOrchestrator, store: JobStore | None = None
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store or JobStore()
        self._worker_running = False
        self._worker_task: asyncio.Task[None] | None = None

    @property
    def worker_running(self) -> bool:
        return self._worker_running

    def submit(self, job_input: JobInput, *, retry_of: str | None = None) -> str:
        """Queue an extraction and return its job id immediately.

        Must be called from a running event loop.
        """
        job = Job(id=str(uuid.uuid4()), input=job_input, retry_of=retry_of)
        self.store.add(job)
        logger.info(
            f"Queued job {job.id} for category {job_input.category.category_id} "
            f"({self.store.queued} waiting)"
        )
        self._ensure_worker()
        return job.id

    def get(self, job_id: str) -> Job | None:
        return self.store.get(job_id)

    def retry(self, job_id: str) -> str:
        """Re-submit the input of a failed job as a new job.

        The failed job is left untouched.

        Raises:
            JobNotFoundError: No job with this id is stored.
            JobNotRetryableError: The job has not failed.
        """
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        if job.status is not JobStatus.FAILED:
            raise JobNotRetryableError(
                f"Job {job_id} is {job.status}; only failed jobs can be retried"
            )
        new_id = self.submit(job.input, retry_of=job.id)
        logger.info(f"Retrying failed job {job_id} as {new_id}")
        return new_id

    def queue_status(self) -> QueueStatus:
        counts = self.store.status_counts()
        return QueueStatus(
            pending_jobs=counts[JobStatus.PENDING],
            processing_jobs=counts[JobStatus.PROCESSING],
            completed_jobs=counts[JobStatus.COMPLETED],
            failed_jobs=counts[JobStatus.FAILED],
            total_jobs=len(self.store),
            worker_running=self._worker_running,
        )

    def evict_finished(self, older_than: timedelta) -> int:
        """Forget completed/failed jobs not updated within ``older_than``."""
        evicted = self.store.evict_finished(datetime.now(UTC) - older_than)
        if evicted:
            logger.info(f"Evicted {evicted} finished jobs")
        return evicted

    async def drain(self) -> None:
        """Wait until the worker has emptied the queue."""
        while self._worker_task is not None and not self._worker_task.done():
            await asyncio.shield(self._worker_task)

    async def shutdown(self, cancel: bool = False) -> None:
        """Stop the worker, either after draining the queue or immediately."""
        task = self._worker_task
        if task is None or task.done():
            return
        if not cancel:
            logger.info(f"Draining {self.store.queued} queued jobs before shutdown")
            await self.drain()
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Extraction worker cancelled")

    def _ensure_worker(self) -> None:
        if self._worker_running:
            return
        # Raises RuntimeError outside a running loop; the guard stays down so
        # the queued job is picked up by the next submit from inside a loop
        self._worker_task = asyncio.get_running_loop().create_task(
            self._run_worker(), name="extraction-worker"
        )
        self._worker_running = True

    async def _run_worker(self) -> None:
        try:
            while (job := self.store.pop_next()) is not None:
                await self._process(job)
        finally:
            # No await between the empty check and this reset, so a submit
            # cannot slip in and find the guard up with no worker behind it
            self._worker_running = False

    async def _process(self, job: Job) -> None:
        job.transition(JobStatus.PROCESSING)
        logger.info(f"Processing job {job.id}")
        try:
            result = await self.orchestrator.extract(
                image_bytes=job.input.image_bytes,
                mime_type=job.input.mime_type,
                category=job.input.category,
                model_id=job.input.model_id,
                discovery_enabled=job.input.discovery_enabled,
                job_id=job.id,
            )
        except asyncio.CancelledError:
            job.transition(JobStatus.FAILED, error="Cancelled during shutdown")
            raise
        except Exception as e:
            logger.exception(f"Job {job.id} failed with an unexpected error")
            job.transition(JobStatus.FAILED, error=str(e) or e.__class__.__name__)
            return

        if isinstance(result, FailedExtraction):
            job.transition(JobStatus.FAILED, result=result, error=result.error)
            logger.info(f"Job {job.id} failed: {result.error}")
        else:
            job.transition(JobStatus.COMPLETED, result=result)
            logger.info(f"Job {job.id} completed")
