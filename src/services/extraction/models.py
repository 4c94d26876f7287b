"""Internal contract objects passed between extraction components.

* ModelReply        - Raw text and token usage from one vision model call.
* ValidationOutcome - What the response validator made of that text.
* AnalyticsEvent    - One record per finished extraction, success or failure.

API-facing shapes live in `schemas.extraction`; these stay plain dataclasses so
the orchestrator can build them without validation overhead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from schemas.discovery import DiscoveredAttribute
from schemas.extraction import AttributeDetail


@dataclass(slots=True)
class ModelReply:
    """Text returned by the vision model plus reported usage."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(slots=True)
class ValidationOutcome:
    """Validated attributes for every enabled field of a category."""

    attributes: dict[str, AttributeDetail]
    overall_confidence: float
    errors: list[str] = field(default_factory=list)
    discoveries: list[DiscoveredAttribute] = field(default_factory=list)
    # Set when the whole response could not be decoded as a JSON object
    parse_error: str | None = None


@dataclass(slots=True)
class AnalyticsEvent:
    job_id: str | None
    category_id: str
    status: str
    processing_time_ms: int
    tokens_used: int
    model_id: str
    cost: float
    error_message: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
