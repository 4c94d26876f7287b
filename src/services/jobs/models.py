"""Job records for the in-memory extraction queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from core.exceptions import InvalidJobTransitionError
from schemas.extraction import CategorySchema, ExtractionResult
from schemas.jobs import JobStatusResponse


class JobStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Status only ever moves forward; terminal states have no successors
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class JobInput:
    """Everything needed to run (or re-run) one extraction."""

    image_bytes: bytes = field(repr=False)
    mime_type: str
    category: CategorySchema
    model_id: str
    discovery_enabled: bool = False


@dataclass(slots=True)
class Job:
    id: str
    input: JobInput
    status: JobStatus = JobStatus.PENDING
    result: ExtractionResult | None = None
    error: str | None = None
    retry_of: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def transition(
        self,
        new_status: JobStatus,
        *,
        result: ExtractionResult | None = None,
        error: str | None = None,
    ) -> None:
        """Move the job to ``new_status``.

        Raises:
            InvalidJobTransitionError: ``new_status`` is not a forward step
                from the current status.
        """
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidJobTransitionError(
                f"Job {self.id} cannot move from {self.status} to {new_status}"
            )
        self.status = new_status
        if result is not None:
            self.result = result
        if error is not None:
            self.error = error
        self.updated_at = _utcnow()

    def to_response(self) -> JobStatusResponse:
        """Public view of the job, without the image bytes."""
        return JobStatusResponse(
            job_id=self.id,
            status=self.status.value,
            category_id=self.input.category.category_id,
            model_id=self.input.model_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            result=self.result,
            error=self.error,
        )
