"""Job storage and FIFO queue, mutated only from the event loop."""

from __future__ import annotations

import logging
from collections import Counter, deque
from datetime import datetime

from services.jobs.models import Job, JobStatus


logger = logging.getLogger(__name__)


class JobStore:
    """Jobs by id plus the queue of ids waiting for the worker."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._queue: deque[str] = deque()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def add(self, job: Job) -> None:
        """Store a new job and append it to the tail of the queue."""
        self._jobs[job.id] = job
        self._queue.append(job.id)

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def pop_next(self) -> Job | None:
        """Remove and return the oldest queued job that is still stored."""
        while self._queue:
            job = self._jobs.get(self._queue.popleft())
            if job is not None:
                return job
        return None

    @property
    def queued(self) -> int:
        return len(self._queue)

    def status_counts(self) -> Counter[JobStatus]:
        return Counter(job.status for job in self._jobs.values())

    def evict_finished(self, cutoff: datetime) -> int:
        """Drop terminal jobs last updated before ``cutoff``; returns how many."""
        stale = [
            job_id
            for job_id, job in self._jobs.items()
            if job.status.is_terminal and job.updated_at < cutoff
        ]
        for job_id in stale:
            del self._jobs[job_id]
        return len(stale)
