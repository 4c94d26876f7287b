"""Extraction job submission, polling and retry endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError

from core.config import get_settings
from core.exceptions import JobNotFoundError
from dependencies.state import JobSchedulerDep
from schemas.api import ApiResponse
from schemas.extraction import CategorySchema
from schemas.jobs import JobStatusResponse, QueueStatus, SubmitResponse
from services.extraction.pricing import resolve_model
from services.images.normalize import (
    NORMALIZED_MIME_TYPE,
    ImageFormatError,
    ImageSizeLimitError,
    ImageValidationError,
    prepare_upload,
)
from services.jobs.models import JobInput, JobStatus


logger = logging.getLogger(__name__)

router = APIRouter(tags=["extraction"])


def _parse_category(raw: str) -> CategorySchema:
    try:
        return CategorySchema.model_validate_json(raw)
    except ValidationError as e:
        logger.info(
            f"Rejected extraction request: invalid category ({e.error_count()} errors)"
        )
        raise HTTPException(
            status_code=422,
            detail="category must be a JSON category schema",
        ) from e


def _prepare_image(image_bytes: bytes, content_type: str | None) -> bytes:
    settings = get_settings()
    try:
        return prepare_upload(
            image_bytes,
            content_type,
            max_bytes=settings.MAX_IMAGE_BYTES,
            max_dimension=settings.MAX_IMAGE_DIMENSION,
        )
    except ImageSizeLimitError as e:
        raise HTTPException(status_code=413, detail=str(e)) from e
    except ImageFormatError as e:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e)
        ) from e
    except ImageValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from e


@router.post(
    "/extract",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ApiResponse[SubmitResponse],
)
async def submit_extraction(
    job_scheduler: JobSchedulerDep,
    file: Annotated[UploadFile, File(description="Garment image")],
    category: Annotated[str, Form(description="CategorySchema as JSON")],
    model_id: Annotated[str | None, Form()] = None,
    discovery: Annotated[bool | None, Form()] = None,
) -> ApiResponse[SubmitResponse]:
    """Queue an attribute extraction and return the job id immediately.

    The image is validated and normalized before queueing; the extraction
    itself runs in the background worker. Poll ``/extract/status/{job_id}``
    for the outcome.
    """
    settings = get_settings()
    category_schema = _parse_category(category)
    image_bytes = _prepare_image(await file.read(), file.content_type)

    job_id = job_scheduler.submit(
        JobInput(
            image_bytes=image_bytes,
            mime_type=NORMALIZED_MIME_TYPE,
            category=category_schema,
            model_id=resolve_model(model_id),
            discovery_enabled=(
                settings.DISCOVERY_ENABLED if discovery is None else discovery
            ),
        )
    )
    return ApiResponse(
        data=SubmitResponse(job_id=job_id, status=JobStatus.PENDING.value),
        message="Extraction queued",
    )


@router.get(
    "/extract/status/{job_id}",
    response_model=ApiResponse[JobStatusResponse],
)
async def get_extraction_status(
    job_id: str, job_scheduler: JobSchedulerDep
) -> ApiResponse[JobStatusResponse]:
    job = job_scheduler.get(job_id)
    if job is None:
        raise JobNotFoundError(f"Job {job_id} not found")
    return ApiResponse(data=job.to_response(), message=f"Job is {job.status}")


@router.post(
    "/extract/retry/{job_id}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ApiResponse[SubmitResponse],
)
async def retry_extraction(
    job_id: str, job_scheduler: JobSchedulerDep
) -> ApiResponse[SubmitResponse]:
    """Re-queue a failed job's input as a new job."""
    new_job_id = job_scheduler.retry(job_id)
    return ApiResponse(
        data=SubmitResponse(job_id=new_job_id, status=JobStatus.PENDING.value),
        message="Extraction re-queued",
    )


@router.get("/queue/status", response_model=ApiResponse[QueueStatus])
async def get_queue_status(job_scheduler: JobSchedulerDep) -> ApiResponse[QueueStatus]:
    return ApiResponse(data=job_scheduler.queue_status())
