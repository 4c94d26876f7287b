"""API shapes for extraction jobs and the queue."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from schemas.extraction import ExtractionResult


JobStatusLiteral = Literal["pending", "processing", "completed", "failed"]


class SubmitResponse(BaseModel):
    """Returned as soon as a job is queued."""

    job_id: str
    status: JobStatusLiteral

    model_config = ConfigDict(extra="forbid")


class JobStatusResponse(BaseModel):
    """Public view of a job. Never includes the submitted image."""

    job_id: str
    status: JobStatusLiteral
    category_id: str
    model_id: str
    created_at: datetime
    updated_at: datetime
    result: ExtractionResult | None = None
    error: str | None = None

    model_config = ConfigDict(extra="forbid")


class QueueStatus(BaseModel):
    """Snapshot of the in-memory queue."""

    pending_jobs: int = 0
    processing_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    total_jobs: int = 0
    worker_running: bool = False

    model_config = ConfigDict(extra="forbid")


class ModelPricingEntry(BaseModel):
    """Per-1K token rates for a supported model."""

    model_id: str
    input_per_1k: float
    output_per_1k: float
    vision_multiplier: float = 1.0
    is_default: bool = False

    model_config = ConfigDict(extra="forbid")


class AnalyticsSummary(BaseModel):
    """Aggregate of recorded extraction events."""

    total_extractions: int = 0
    successful_extractions: int = 0
    failed_extractions: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    average_processing_time_ms: float = 0.0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_model: dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")
