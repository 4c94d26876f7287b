"""Process-lifetime aggregation of discovered attributes.

One record is kept per discovery key across all categories, plus a secondary
index of which keys each category has produced. A key that keeps showing up
with good confidence becomes promotable: it can be turned into a draft field
definition for the category schema.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import UTC, datetime

from schemas.discovery import (
    DiscoveredAttribute,
    DiscoverySessionStats,
    DiscoveryStats,
    SchemaFieldDraft,
)


logger = logging.getLogger(__name__)

PROMOTION_MIN_FREQUENCY = 2
PROMOTION_MIN_CONFIDENCE = 75
HIGH_CONFIDENCE = 80
SELECT_WEIGHT = 1.2
DESCRIPTION_REASONING_CHARS = 100


def is_promotable(discovery: DiscoveredAttribute) -> bool:
    return (
        discovery.frequency >= PROMOTION_MIN_FREQUENCY
        and discovery.confidence >= PROMOTION_MIN_CONFIDENCE
        and len(discovery.normalized_value) > 0
    )


def discovery_score(discovery: DiscoveredAttribute) -> float:
    """Ranking score: frequency x confidence, with select types weighted up."""
    weight = SELECT_WEIGHT if discovery.suggested_type == "select" else 1.0
    return discovery.frequency * discovery.confidence * weight


def update_discovery(
    old: DiscoveredAttribute,
    observation: DiscoveredAttribute,
    now: datetime | None = None,
) -> DiscoveredAttribute:
    """Fold a new observation of the same key into an existing record.

    Frequency always increases by one, whatever value was observed. Confidence
    becomes the running average rounded half up. Reasoning and ``updated_at`` follow
    the latest observation; for select types the observed value joins the
    sorted, de-duplicated ``possible_values``. Neither input is modified.
    """
    frequency = old.frequency + 1
    average = (old.confidence * old.frequency + observation.confidence) / frequency
    # halves round up, so 74.5 becomes 75
    confidence = math.floor(average + 0.5)

    possible_values = list(old.possible_values)
    if old.suggested_type == "select" and observation.normalized_value:
        possible_values = sorted(set(possible_values) | {observation.normalized_value})

    updated = old.model_copy(
        update={
            "frequency": frequency,
            "confidence": confidence,
            "reasoning": observation.reasoning,
            "possible_values": possible_values,
            "updated_at": now or datetime.now(UTC),
        }
    )
    return updated.model_copy(update={"is_promotable": is_promotable(updated)})


class DiscoveryAggregator:
    """In-memory store of discoveries, owned by the application lifespan."""

    def __init__(self) -> None:
        self._discoveries: dict[str, DiscoveredAttribute] = {}
        self._category_keys: dict[str, set[str]] = {}
        self._total_extractions = 0
        self._total_discoveries = 0
        self._unique_discoveries = 0

    def observe(
        self,
        discoveries: Sequence[DiscoveredAttribute],
        category_id: str | None = None,
    ) -> None:
        """Record the discoveries of one extraction."""
        self._total_extractions += 1
        self._total_discoveries += len(discoveries)
        now = datetime.now(UTC)

        for discovery in discoveries:
            existing = self._discoveries.get(discovery.key)
            if existing is not None:
                self._discoveries[discovery.key] = update_discovery(
                    existing, discovery, now
                )
            else:
                self._discoveries[discovery.key] = discovery.model_copy(
                    update={
                        "frequency": 1,
                        "is_promotable": False,
                        "category_id": category_id or discovery.category_id,
                        "created_at": now,
                        "updated_at": now,
                    }
                )
                self._unique_discoveries += 1

            if category_id:
                self._category_keys.setdefault(category_id, set()).add(discovery.key)

        if discoveries:
            logger.debug(
                f"Processed {len(discoveries)} discoveries for category {category_id}"
            )

    def list(self, category_id: str | None = None) -> list[DiscoveredAttribute]:
        """All discoveries, or those seen for one category, best first."""
        if category_id is None:
            records = list(self._discoveries.values())
        else:
            keys = self._category_keys.get(category_id, set())
            records = [self._discoveries[k] for k in keys if k in self._discoveries]
        return sorted(records, key=discovery_score, reverse=True)

    def promotable(
        self,
        min_frequency: int = PROMOTION_MIN_FREQUENCY,
        min_confidence: int = PROMOTION_MIN_CONFIDENCE,
    ) -> list[DiscoveredAttribute]:
        records = [
            d
            for d in self._discoveries.values()
            if d.frequency >= min_frequency and d.confidence >= min_confidence
        ]
        return sorted(records, key=discovery_score, reverse=True)

    def get(self, key: str) -> DiscoveredAttribute | None:
        return self._discoveries.get(key)

    def promote(self, key: str) -> SchemaFieldDraft | None:
        """Draft a schema field from a promotable discovery.

        The discovery itself is left in place; returns None when the key is
        unknown or not promotable.
        """
        discovery = self._discoveries.get(key)
        if discovery is None or not discovery.is_promotable:
            return None

        logger.info(f"Promoted discovery {key!r} to schema draft")
        return SchemaFieldDraft(
            key=discovery.key,
            label=discovery.label,
            type=discovery.suggested_type,
            required=False,
            options=(
                list(discovery.possible_values)
                if discovery.suggested_type == "select"
                else None
            ),
            description=(
                "Auto-discovered: "
                f"{discovery.reasoning[:DESCRIPTION_REASONING_CHARS]}..."
            ),
        )

    def stats(self, category_id: str | None = None) -> DiscoveryStats:
        records = self.list(category_id)
        return DiscoveryStats(
            total_found=len(records),
            high_confidence=sum(1 for d in records if d.confidence >= HIGH_CONFIDENCE),
            schema_promotable=sum(1 for d in records if d.is_promotable),
            unique_keys=len({d.key for d in records}),
        )

    def session_stats(self) -> DiscoverySessionStats:
        return DiscoverySessionStats(
            total_extractions=self._total_extractions,
            total_discoveries=self._total_discoveries,
            unique_discoveries=self._unique_discoveries,
        )

    def clear(self) -> None:
        self._discoveries.clear()
        self._category_keys.clear()
        self._total_extractions = 0
        self._total_discoveries = 0
        self._unique_discoveries = 0
        logger.info("Discovery aggregator cleared")
