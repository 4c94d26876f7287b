"""Schemas for category attribute definitions and extraction results.

The category schema (``CategorySchema`` / ``AttributeFieldSpec``) is supplied by
the caller with every extraction request and drives both the prompt and the
validation of the model's answer. Results are a tagged union on ``status`` so a
job carries exactly one of a completed or a failed extraction.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from schemas.discovery import DiscoveredAttribute


FieldType = Literal["text", "number", "boolean", "select"]


class AttributeOption(BaseModel):
    """One entry of a controlled vocabulary."""

    short_form: str = Field(..., min_length=1, max_length=100)
    full_form: str = Field(..., min_length=1, max_length=200)

    model_config = ConfigDict(extra="forbid", frozen=True)


class AttributeFieldSpec(BaseModel):
    """Definition of one expected attribute within a category."""

    key: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=100)
    type: FieldType = "text"
    required: bool = False
    enabled: bool = True
    options: list[AttributeOption] | None = None
    description: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class CategorySchema(BaseModel):
    """Category context sent with an extraction request."""

    category_id: str = Field(..., min_length=1)
    category_name: str = Field(..., min_length=1)
    department: str | None = None
    sub_department: str | None = None
    fields: list[AttributeFieldSpec] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def enabled_fields(self) -> list[AttributeFieldSpec]:
        return [spec for spec in self.fields if spec.enabled]

    @property
    def context(self) -> str:
        """Category name and department words, space separated."""
        parts = (self.category_name, self.department, self.sub_department)
        return " ".join(p for p in parts if p)


class AttributeDetail(BaseModel):
    """Validated value for one field, with confidence and reasoning."""

    value: str | None
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    is_valid: bool
    field_label: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class CompletedExtraction(BaseModel):
    """Extraction that reached the model and produced a (possibly empty) answer."""

    status: Literal["completed"] = "completed"
    attributes: dict[str, AttributeDetail] = Field(default_factory=dict)
    overall_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    tokens_used: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    processing_time_ms: int = 0
    cost: float = 0.0
    model_id: str
    errors: list[str] = Field(default_factory=list)
    discoveries: list[DiscoveredAttribute] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class FailedExtraction(BaseModel):
    """Extraction that could not produce attributes at all."""

    status: Literal["failed"] = "failed"
    error: str
    error_code: str = "upstream_error"
    processing_time_ms: int = 0
    model_id: str

    model_config = ConfigDict(extra="forbid")


ExtractionResult = Annotated[
    CompletedExtraction | FailedExtraction, Field(discriminator="status")
]
