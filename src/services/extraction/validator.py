"""Validation of raw vision-model output against a category schema.

The model is asked for a single JSON object keyed by field key. Whatever comes
back is decoded strictly: every enabled field ends up with an
``AttributeDetail`` carrying a typed value (or ``None``) and a confidence,
and nothing from the response leaks through unvalidated.

Confidence scale:
    0.95  exact (case-insensitive) match of a short or full option form
    0.85  free-text value for a field without options
    0.60  model reported the attribute as not visible
    score * 0.8  fuzzy option match with similarity score > 0.7
    0.0   value outside the options, or the response could not be parsed
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from schemas.extraction import AttributeDetail, AttributeFieldSpec, AttributeOption
from services.extraction.discovery_parser import DISCOVERIES_KEY, parse_discoveries
from services.extraction.exceptions import FieldValidationError, ParseError
from services.extraction.models import ValidationOutcome


logger = logging.getLogger(__name__)

EXACT_MATCH_CONFIDENCE = 0.95
FREE_TEXT_CONFIDENCE = 0.85
NOT_VISIBLE_CONFIDENCE = 0.6
FUZZY_MATCH_THRESHOLD = 0.7
FUZZY_CONFIDENCE_FACTOR = 0.8
SUBSTRING_SIMILARITY = 0.8
MAX_FREE_TEXT_LENGTH = 100

NOT_VISIBLE_SENTINELS = frozenset({"null", "not visible", "not_visible"})

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _normalize(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def similarity(a: str, b: str) -> float:
    """Cheap, symmetric string similarity in [0, 1].

    Both inputs are lower-cased and reduced to ``[a-z0-9]``. Identical strings
    score 1.0, containment scores 0.8, anything else is the Jaccard index of
    the two character sets.
    """
    a, b = _normalize(a), _normalize(b)
    if a == b:
        return 1.0
    if a in b or b in a:
        return SUBSTRING_SIMILARITY
    chars_a, chars_b = set(a), set(b)
    union = chars_a | chars_b
    if not union:
        return 0.0
    return len(chars_a & chars_b) / len(union)


def find_closest_option(
    value: str, options: Sequence[AttributeOption]
) -> tuple[AttributeOption | None, float]:
    """Best option by ``max(sim(value, short), sim(value, full))``; first wins ties."""
    best: AttributeOption | None = None
    best_score = 0.0
    for option in options:
        score = max(
            similarity(value, option.short_form), similarity(value, option.full_form)
        )
        if score > best_score:
            best, best_score = option, score
    return best, best_score


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` line and a trailing ``` fence."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        newline = cleaned.find("\n")
        cleaned = cleaned[newline + 1 :] if newline != -1 else cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def decode_response(raw_text: str) -> dict[str, Any]:
    """Decode model output into a JSON object or raise ParseError."""
    try:
        parsed = json.loads(strip_code_fences(raw_text))
    except json.JSONDecodeError as e:
        raise ParseError(str(e)) from e
    if not isinstance(parsed, dict):
        raise ParseError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _render(raw: Any) -> str | None:
    """Render a JSON scalar as text; ``None`` for absent or not-visible values."""
    if raw is None:
        return None
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, dict | list):
        text = json.dumps(raw, ensure_ascii=False)
    else:
        text = str(raw).strip()
    if not text or text.lower() in NOT_VISIBLE_SENTINELS:
        return None
    return text


class ResponseValidator:
    """Maps a model response onto the enabled fields of a category."""

    def validate(
        self,
        raw_text: str,
        field_specs: Sequence[AttributeFieldSpec],
        *,
        discovery_enabled: bool = False,
        category_id: str | None = None,
        category_context: str | None = None,
    ) -> ValidationOutcome:
        try:
            parsed = decode_response(raw_text)
        except ParseError as e:
            logger.warning(f"Model response could not be parsed: {e.message}")
            logger.debug(f"Unparseable response preview: {raw_text[:200]!r}")
            return self._unparseable(field_specs, e)

        attributes: dict[str, AttributeDetail] = {}
        errors: list[str] = []
        for spec in field_specs:
            detail, error = self._validate_field(spec, parsed.get(spec.key))
            attributes[spec.key] = detail
            if error is not None:
                errors.append(error.message)

        discoveries = []
        if discovery_enabled:
            discoveries = parse_discoveries(
                parsed.get(DISCOVERIES_KEY),
                schema_keys=[spec.key for spec in field_specs],
                category_id=category_id,
                category_context=category_context,
            )

        return ValidationOutcome(
            attributes=attributes,
            overall_confidence=_mean_confidence(attributes),
            errors=errors,
            discoveries=discoveries,
        )

    def _validate_field(
        self, spec: AttributeFieldSpec, raw: Any
    ) -> tuple[AttributeDetail, FieldValidationError | None]:
        value = _render(raw)
        if value is None:
            return (
                AttributeDetail(
                    value=None,
                    confidence=NOT_VISIBLE_CONFIDENCE,
                    reasoning="Not visible in image",
                    is_valid=True,
                    field_label=spec.label,
                ),
                None,
            )

        if not spec.options:
            return (
                AttributeDetail(
                    value=value[:MAX_FREE_TEXT_LENGTH],
                    confidence=FREE_TEXT_CONFIDENCE,
                    reasoning="Free-text value reported by model",
                    is_valid=True,
                    field_label=spec.label,
                ),
                None,
            )

        lowered = value.lower()
        for option in spec.options:
            if lowered in (option.short_form.lower(), option.full_form.lower()):
                return (
                    AttributeDetail(
                        value=option.short_form,
                        confidence=EXACT_MATCH_CONFIDENCE,
                        reasoning="Exact match to option",
                        is_valid=True,
                        field_label=spec.label,
                    ),
                    None,
                )

        best, score = find_closest_option(value, spec.options)
        if best is not None and score > FUZZY_MATCH_THRESHOLD:
            logger.debug(
                f"Fuzzy match for {spec.key}: {value!r} -> {best.short_form!r} "
                f"({score:.2f})"
            )
            return (
                AttributeDetail(
                    value=best.short_form,
                    confidence=score * FUZZY_CONFIDENCE_FACTOR,
                    reasoning=f"Fuzzy match to {best.short_form!r} ({score:.0%})",
                    is_valid=True,
                    field_label=spec.label,
                ),
                None,
            )

        error = FieldValidationError(f"Invalid '{spec.label}': '{value}' not in options")
        return (
            AttributeDetail(
                value=None,
                confidence=0.0,
                reasoning=error.message,
                is_valid=False,
                field_label=spec.label,
            ),
            error,
        )

    def _unparseable(
        self, field_specs: Sequence[AttributeFieldSpec], error: ParseError
    ) -> ValidationOutcome:
        attributes = {
            spec.key: AttributeDetail(
                value=None,
                confidence=0.0,
                reasoning="Model response could not be parsed",
                is_valid=False,
                field_label=spec.label,
            )
            for spec in field_specs
        }
        return ValidationOutcome(
            attributes=attributes,
            overall_confidence=0.0,
            errors=[f"Parse error: {error.message}"],
            parse_error=error.message,
        )


def _mean_confidence(attributes: dict[str, AttributeDetail]) -> float:
    if not attributes:
        return 0.0
    mean = sum(d.confidence for d in attributes.values()) / len(attributes)
    return min(max(mean, 0.0), 1.0)
