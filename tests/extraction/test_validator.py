"""Unit tests for ResponseValidator and the similarity helpers."""

import json

import pytest

from schemas.extraction import AttributeFieldSpec, AttributeOption
from services.extraction.validator import (
    ResponseValidator,
    find_closest_option,
    similarity,
    strip_code_fences,
)


@pytest.fixture
def validator() -> ResponseValidator:
    return ResponseValidator()


def test_exact_match_is_case_insensitive_and_returns_short_form(
    validator, tshirt_category
):
    outcome = validator.validate(
        json.dumps({"color_main": "red", "neck": "V NECK", "print_desc": "stars"}),
        tshirt_category.fields,
    )
    color = outcome.attributes["color_main"]
    assert color.value == "RED"
    assert color.confidence == 0.95
    assert color.is_valid is True
    assert color.field_label == "Main Color"

    # Full form match also maps to the short form
    assert outcome.attributes["neck"].value == "VNECK"
    assert outcome.attributes["neck"].confidence == 0.95


def test_end_to_end_exact_fuzzy_and_not_visible(validator, tshirt_category):
    raw = json.dumps(
        {"color_main": "red", "neck": "Crew-neck", "print_desc": "not visible"}
    )

    outcome = validator.validate(raw, tshirt_category.fields)

    color = outcome.attributes["color_main"]
    neck = outcome.attributes["neck"]
    print_desc = outcome.attributes["print_desc"]

    assert (color.value, color.confidence) == ("RED", 0.95)
    # "crewneck" normalizes to the full form exactly: score 1.0, scaled by 0.8
    assert neck.value == "CREW"
    assert neck.confidence == pytest.approx(0.8)
    assert print_desc.value is None
    assert print_desc.confidence == 0.6
    assert outcome.overall_confidence == pytest.approx((0.95 + 0.8 + 0.6) / 3)
    assert outcome.errors == []
    assert outcome.parse_error is None


def test_fuzzy_substring_match_scores_point_eight_times_point_eight(
    validator, tshirt_category
):
    outcome = validator.validate('{"color_main": "Bluish"}', tshirt_category.fields)

    color = outcome.attributes["color_main"]
    assert color.value == "BLU"
    assert color.confidence == pytest.approx(0.8 * 0.8)


def test_value_outside_options_is_a_field_error(validator, tshirt_category):
    outcome = validator.validate('{"neck": "turtleneck"}', tshirt_category.fields)

    neck = outcome.attributes["neck"]
    assert neck.value is None
    assert neck.confidence == 0
    assert neck.is_valid is False
    assert outcome.errors == ["Invalid 'Neck Style': 'turtleneck' not in options"]


@pytest.mark.parametrize(
    "raw_value", [None, "", "   ", "null", "NULL", "Not Visible", "not_visible"]
)
def test_absent_and_sentinel_values_are_not_visible(
    validator, tshirt_category, raw_value
):
    outcome = validator.validate(
        json.dumps({"color_main": raw_value}), tshirt_category.fields
    )

    color = outcome.attributes["color_main"]
    assert color.value is None
    assert color.confidence == 0.6
    assert color.is_valid is True


def test_missing_key_is_not_visible(validator, tshirt_category):
    outcome = validator.validate("{}", tshirt_category.fields)

    assert all(d.value is None for d in outcome.attributes.values())
    assert outcome.overall_confidence == pytest.approx(0.6)


def test_free_text_values_are_rendered_and_truncated(validator):
    specs = [
        AttributeFieldSpec(key="notes", label="Notes", type="text"),
        AttributeFieldSpec(key="lined", label="Lined", type="boolean"),
        AttributeFieldSpec(key="pockets", label="Pockets", type="number"),
    ]
    raw = json.dumps({"notes": "x" * 150, "lined": False, "pockets": 2})

    outcome = validator.validate(raw, specs)

    assert outcome.attributes["notes"].value == "x" * 100
    assert outcome.attributes["notes"].confidence == 0.85
    assert outcome.attributes["lined"].value == "false"
    assert outcome.attributes["pockets"].value == "2"


def test_code_fenced_response_is_parsed(validator, tshirt_category):
    raw = '```json\n{"color_main": "GRN"}\n```'

    outcome = validator.validate(raw, tshirt_category.fields)

    assert outcome.attributes["color_main"].value == "GRN"
    assert outcome.errors == []


@pytest.mark.parametrize(
    "raw",
    [
        "I'm sorry, I can't help with that.",
        "[1, 2, 3]",
        '{"color_main": "RED"',
    ],
)
def test_unparseable_response_zeroes_every_field(validator, tshirt_category, raw):
    outcome = validator.validate(raw, tshirt_category.fields)

    assert set(outcome.attributes) == {"color_main", "neck", "print_desc"}
    for detail in outcome.attributes.values():
        assert detail.value is None
        assert detail.confidence == 0
        assert detail.is_valid is False
    assert outcome.overall_confidence == 0
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith("Parse error: ")
    assert outcome.parse_error is not None


def test_no_fields_gives_zero_overall_confidence(validator):
    outcome = validator.validate('{"anything": "red"}', [])

    assert outcome.attributes == {}
    assert outcome.overall_confidence == 0


def test_overall_confidence_is_mean_within_bounds(validator, tshirt_category):
    raw = json.dumps({"color_main": "RED", "neck": "turtleneck", "print_desc": "ok"})

    outcome = validator.validate(raw, tshirt_category.fields)

    expected = (0.95 + 0.0 + 0.85) / 3
    assert outcome.overall_confidence == pytest.approx(expected)
    assert 0.0 <= outcome.overall_confidence <= 1.0


def test_discoveries_only_decoded_when_enabled(validator, tshirt_category):
    raw = json.dumps(
        {
            "color_main": "RED",
            "_discoveries": {
                "button_material": {
                    "rawValue": "shiny metal buttons",
                    "normalizedValue": "metal",
                    "confidence": 85,
                    "reasoning": "Visible metal buttons on placket",
                }
            },
        }
    )

    disabled = validator.validate(raw, tshirt_category.fields)
    enabled = validator.validate(
        raw, tshirt_category.fields, discovery_enabled=True, category_id="cat-tshirt"
    )

    assert disabled.discoveries == []
    assert [d.key for d in enabled.discoveries] == ["button_material"]
    assert enabled.discoveries[0].category_id == "cat-tshirt"
    assert "_discoveries" not in enabled.attributes


class TestSimilarity:
    def test_identical_after_normalization(self):
        assert similarity("Crew Neck", "crew-neck") == 1.0

    def test_substring_scores_point_eight(self):
        assert similarity("navy blue", "Blue") == 0.8

    def test_character_set_jaccard(self):
        # {a,b,c} vs {c,d,e}: 1 shared of 5
        assert similarity("abc", "cde") == pytest.approx(0.2)

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("Bluish", "BLU"),
            ("turtleneck", "Crew Neck"),
            ("abc", "xyz"),
            ("Red", ""),
        ],
    )
    def test_symmetric(self, a, b):
        assert similarity(a, b) == similarity(b, a)

    def test_closest_option_prefers_first_on_ties(self):
        options = [
            AttributeOption(short_form="AB", full_form="ab one"),
            AttributeOption(short_form="AB2", full_form="ab two"),
        ]

        best, score = find_closest_option("ab", options)

        assert best is not None
        assert best.short_form == "AB"
        assert score == 1.0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}```', '{"a": 1}'),
        ('  {"a": 1}  ', '{"a": 1}'),
    ],
)
def test_strip_code_fences(raw, expected):
    assert strip_code_fences(raw) == expected
