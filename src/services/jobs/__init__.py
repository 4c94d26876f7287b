"""In-memory extraction job queue."""

from .models import Job, JobInput, JobStatus
from .scheduler import ExtractionScheduler
from .store import JobStore


__all__ = [
    "ExtractionScheduler",
    "Job",
    "JobInput",
    "JobStatus",
    "JobStore",
]
