"""Prompt construction for attribute extraction.

Only the structure of the prompt is load-bearing: every enabled field is listed
with its key, label and type; ``select`` fields list every option as a
short/full pair; the answer is one JSON object keyed by field key; and the
optional reserved ``_discoveries`` object is requested only when discovery is
on. The wording can change freely.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from schemas.extraction import AttributeFieldSpec, CategorySchema
from services.extraction.discovery_parser import DISCOVERIES_KEY


NOT_VISIBLE = "not visible"

SYSTEM_PROMPT = (
    "You are a fashion expert that analyzes garment images with high precision. "
    "Always respond with a single valid JSON object and no markdown."
)


def _field_block(spec: AttributeFieldSpec) -> dict[str, object]:
    block: dict[str, object] = {"label": spec.label, "type": spec.type}
    if spec.description:
        block["description"] = spec.description
    if spec.options:
        block["options"] = [
            {"shortForm": opt.short_form, "fullForm": opt.full_form}
            for opt in spec.options
        ]
        block["instruction"] = (
            f'Return one shortForm exactly as listed, or "{NOT_VISIBLE}"'
        )
    else:
        block["instruction"] = f'Describe what you see, or "{NOT_VISIBLE}"'
    return block


def _context_line(category: CategorySchema) -> str:
    parts = [p for p in (category.department, category.sub_department) if p]
    where = " ".join(parts)
    prefix = f"a {where} garment" if where else "a garment"
    return f'You are analyzing {prefix}: "{category.category_name}".'


def build_extraction_prompt(
    category: CategorySchema,
    field_specs: Sequence[AttributeFieldSpec] | None = None,
    *,
    discovery_enabled: bool = False,
) -> str:
    """Build the user prompt for one extraction.

    Args:
        category: Category context; its enabled fields are used unless
            ``field_specs`` is given.
        field_specs: Explicit field list (already filtered to enabled fields).
        discovery_enabled: Ask for the reserved discoveries object as well.
    """
    specs = list(field_specs) if field_specs is not None else category.enabled_fields
    attributes = {spec.key: _field_block(spec) for spec in specs}
    example: dict[str, object] = {
        spec.key: "shortForm_or_value_or_not_visible" for spec in specs
    }

    sections = [
        _context_line(category),
        "EXTRACT THESE ATTRIBUTES:\n" + json.dumps(attributes, indent=2),
        "\n".join(
            [
                "RULES:",
                "1. For fields with options, return ONLY an exact shortForm.",
                f'2. Use "{NOT_VISIBLE}" for anything you cannot clearly determine.',
                "3. Describe the main garment, not accessories or background.",
                "4. For colors, give the primary garment color.",
                "5. Prefer accuracy over completeness.",
            ]
        ),
    ]

    if discovery_enabled:
        example[DISCOVERIES_KEY] = {
            "descriptive_key": {
                "rawValue": "what you observe",
                "normalizedValue": "clean structured value",
                "confidence": 80,
                "reasoning": "what you saw and why it matters",
                "suggestedType": "text|select|number",
                "possibleValues": ["value1", "value2"],
            }
        }
        sections.append(
            f'DISCOVERIES (optional): under "{DISCOVERIES_KEY}", report notable '
            "attributes NOT listed above (construction, hardware, fabric, design "
            "details). Use lower_snake_case keys of 3-30 characters and a "
            "confidence from 0 to 100."
        )

    sections.append(
        "RESPONSE FORMAT (one JSON object, no markdown):\n"
        + json.dumps(example, indent=2)
    )
    return "\n\n".join(sections)
