"""Decoding of the reserved ``_discoveries`` object in model responses.

The model may report attributes it can see that the category schema did not
ask about. Entries are screened hard: bad keys, low confidence and generic
values ("yes", "unknown", ...) are dropped before anything reaches the
discovery aggregator.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from schemas.discovery import DiscoveredAttribute, SuggestedType


logger = logging.getLogger(__name__)

DISCOVERIES_KEY = "_discoveries"

MIN_DISCOVERY_CONFIDENCE = 50
MAX_DISCOVERIES = 20
MAX_POSSIBLE_VALUES = 10
MAX_VALUE_LENGTH = 100

GENERIC_VALUES = frozenset(
    {"yes", "no", "true", "false", "n/a", "none", "unknown", "other"}
)

_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]{2,29}$")
_DISALLOWED_VALUE_CHARS = re.compile(r"[^\w\s\-./()]")
_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"^\d+(\.\d+)?$")


def is_valid_discovery_key(key: str) -> bool:
    return bool(_KEY_PATTERN.match(key)) and not key.endswith("_")


def generate_label(key: str) -> str:
    """``sleeve_cuff`` -> ``Sleeve Cuff``."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_") if word)


def clean_value(value: Any) -> str:
    """Collapse whitespace, drop unusual punctuation, cap the length."""
    if value is None:
        return ""
    text = _WHITESPACE.sub(" ", str(value).strip())
    return _DISALLOWED_VALUE_CHARS.sub("", text)[:MAX_VALUE_LENGTH]


def refine_suggested_type(value: str) -> SuggestedType:
    """Derive the field type from the value; the model's own guess is ignored.

    Plain numbers are ``number``; short values of at most three words and no
    full stop are ``select``; anything else is ``text``.
    """
    value = value.lower()
    if _NUMBER.match(value):
        return "number"
    if len(value) <= 30 and "." not in value and len(value.split(" ")) <= 3:
        return "select"
    return "text"


def adjust_confidence_for_category(
    key: str, value: str, confidence: int, category_context: str | None
) -> int:
    """Add 10 points (capped at 100) when the key or value mentions the category."""
    if not category_context:
        return confidence
    text = f"{key} {value}".lower()
    if any(keyword in text for keyword in category_context.lower().split()):
        return min(confidence + 10, 100)
    return confidence


def clean_possible_values(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    cleaned: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        value = value.strip()
        if len(value) >= 2 and value not in cleaned:
            cleaned.append(value)
    return cleaned[:MAX_POSSIBLE_VALUES]


def _coerce_confidence(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        try:
            raw = float(raw.strip().rstrip("%"))
        except ValueError:
            return None
    if isinstance(raw, int | float) and math.isfinite(raw):
        # halves round up
        return math.floor(raw + 0.5)
    return None


def _field(entry: Mapping[str, Any], camel: str, snake: str) -> Any:
    return entry.get(camel, entry.get(snake))


def parse_discoveries(
    data: Any,
    schema_keys: Iterable[str] = (),
    category_id: str | None = None,
    now: datetime | None = None,
    category_context: str | None = None,
) -> list[DiscoveredAttribute]:
    """Turn the raw ``_discoveries`` mapping into screened discovery records.

    Args:
        data: Value of the reserved key in the parsed model response.
        schema_keys: Field keys already covered by the category schema; the
            model sometimes repeats them as discoveries.
        category_id: Category the extraction ran against.
        now: Timestamp for ``created_at`` / ``updated_at``.
        category_context: Category name and department words; discoveries
            mentioning any of them get a confidence boost.

    Returns:
        At most 20 discoveries, highest confidence first.
    """
    if not isinstance(data, Mapping):
        if data is not None:
            logger.debug(f"Ignoring non-object {DISCOVERIES_KEY}: {type(data).__name__}")
        return []

    known_keys = set(schema_keys)
    timestamp = now or datetime.now(UTC)
    discoveries: list[DiscoveredAttribute] = []

    for key, entry in data.items():
        if not isinstance(key, str) or not isinstance(entry, Mapping):
            continue
        if not is_valid_discovery_key(key) or key in known_keys:
            logger.debug(f"Skipping discovery with unusable key {key!r}")
            continue

        confidence = _coerce_confidence(entry.get("confidence"))
        if confidence is None or confidence < MIN_DISCOVERY_CONFIDENCE:
            continue
        confidence = min(confidence, 100)

        normalized = clean_value(_field(entry, "normalizedValue", "normalized_value"))
        if not 2 <= len(normalized) <= MAX_VALUE_LENGTH:
            continue
        if normalized.lower() in GENERIC_VALUES:
            continue

        confidence = adjust_confidence_for_category(
            key, normalized, confidence, category_context
        )
        suggested_type = refine_suggested_type(normalized)

        raw_value = _field(entry, "rawValue", "raw_value")
        reasoning = entry.get("reasoning")
        discoveries.append(
            DiscoveredAttribute(
                key=key,
                label=generate_label(key),
                raw_value=str(raw_value) if raw_value is not None else "",
                normalized_value=normalized,
                confidence=confidence,
                reasoning=str(reasoning) if reasoning else "No reasoning provided",
                frequency=1,
                suggested_type=suggested_type,
                possible_values=clean_possible_values(
                    _field(entry, "possibleValues", "possible_values")
                ),
                is_promotable=False,
                category_id=category_id,
                created_at=timestamp,
                updated_at=timestamp,
            )
        )

    discoveries.sort(key=lambda d: d.confidence, reverse=True)
    return discoveries[:MAX_DISCOVERIES]
