"""Schemas for attributes discovered outside the category schema."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


SuggestedType = Literal["text", "select", "number"]


class DiscoveredAttribute(BaseModel):
    """An attribute the model reported that the category schema did not ask for.

    Instances are immutable; the aggregator replaces a record with a new one on
    every observation of the same key.
    """

    key: str
    label: str
    raw_value: str
    normalized_value: str
    confidence: int = Field(..., ge=0, le=100, description="Confidence 0-100")
    reasoning: str = ""
    frequency: int = Field(default=1, ge=1)
    suggested_type: SuggestedType = "text"
    possible_values: list[str] = Field(default_factory=list)
    is_promotable: bool = False
    category_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class DiscoveryStats(BaseModel):
    """Counts over the discoveries currently held by the aggregator."""

    total_found: int = 0
    high_confidence: int = 0
    schema_promotable: int = 0
    unique_keys: int = 0

    model_config = ConfigDict(extra="forbid")


class DiscoverySessionStats(BaseModel):
    """Process-lifetime observation counters."""

    total_extractions: int = 0
    total_discoveries: int = 0
    unique_discoveries: int = 0

    model_config = ConfigDict(extra="forbid")


class DiscoverySettings(BaseModel):
    """Discovery display and promotion settings reported to clients."""

    enabled: bool = True
    min_confidence: int = 75
    show_in_table: bool = True
    auto_promote: bool = False
    max_discoveries: int = 50

    model_config = ConfigDict(extra="forbid")


class SchemaFieldDraft(BaseModel):
    """Draft attribute definition produced when a discovery is promoted."""

    key: str
    label: str
    type: SuggestedType
    required: bool = False
    options: list[str] | None = None
    description: str

    model_config = ConfigDict(extra="forbid")


class PromoteDiscoveryRequest(BaseModel):
    """Request body for promoting a discovery into a category schema draft."""

    discovery_key: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    label: str | None = Field(default=None, max_length=100)
    type: SuggestedType | None = None

    model_config = ConfigDict(extra="forbid")


class DiscoveryListResponse(BaseModel):
    """Payload of the discovery listing route."""

    discoveries: list[DiscoveredAttribute]
    stats: DiscoveryStats
    settings: DiscoverySettings

    model_config = ConfigDict(extra="forbid")
