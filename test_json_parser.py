"""Tests for recovering JSON from AI completions."""

import json

import pytest

from claims_intake.utils.errors import ResponseParseError, StageValidationError
from claims_intake.utils.json_parser import AIResponseParser, parse_ai_response

CLEAN = {
    "riskLevel": "low",
    "riskScore": 12,
    "fraudIndicators": [],
    "nested": {"list": [1, 2.5, True, None], "text": 'she said "hi"'},
}


@pytest.mark.parametrize("value", [
    CLEAN,
    [1, "two", {"three": 3}],
    {"unicode": "₦150,000 naïve", "empty": {}},
])
def test_serialized_values_parse_back_unchanged(value):
    assert parse_ai_response(json.dumps(value)) == value


def test_markdown_fences_are_stripped():
    text = "```json\n" + json.dumps(CLEAN, indent=2) + "\n```"
    assert parse_ai_response(text) == CLEAN


def test_leading_and_trailing_prose():
    text = "Sure! Here is the assessment:\n" + json.dumps(CLEAN) + "\nLet me know if you need anything else."
    assert parse_ai_response(text) == CLEAN


def test_trailing_explanation_with_braces_after_json():
    text = json.dumps(CLEAN) + "\n\nNote: fields {like this} are estimates."
    assert parse_ai_response(text) == CLEAN


def test_trailing_commas():
    text = '{"a": [1, 2, 3,], "b": {"c": "d",},}'
    assert parse_ai_response(text) == {"a": [1, 2, 3], "b": {"c": "d"}}


def test_single_quoted_keys_and_values():
    text = "{'riskLevel': 'high', 'riskScore': 80}"
    assert parse_ai_response(text) == {"riskLevel": "high", "riskScore": 80}


def test_bare_keys():
    text = '{riskLevel: "medium", riskScore: 50}'
    assert parse_ai_response(text) == {"riskLevel": "medium", "riskScore": 50}


@pytest.mark.parametrize("literal", ["undefined", "NaN", "Infinity", "-Infinity"])
def test_non_json_literals_become_null(literal):
    text = '{"score": %s, "items": [1, %s]}' % (literal, literal)
    assert parse_ai_response(text) == {"score": None, "items": [1, None]}


def test_unescaped_inner_quotes():
    text = '{"overallAssessment": "Claimant said "it was parked" at the time", "riskLevel": "low"}'
    assert parse_ai_response(text) == {
        "overallAssessment": 'Claimant said "it was parked" at the time',
        "riskLevel": "low",
    }


def test_braces_inside_strings_do_not_end_the_span():
    text = 'Result: {"note": "use } and { carefully", "ok": true} trailing'
    assert parse_ai_response(text) == {"note": "use } and { carefully", "ok": True}


def test_repairs_leave_string_values_alone():
    text = '{"note": "Scores were 1, Infinity", "amount": 5,}'
    assert parse_ai_response(text) == {"note": "Scores were 1, Infinity", "amount": 5}


def test_bare_key_repair_skips_string_values():
    text = '{"damageDescription": "Rear bumper, note: scratched", "amount": 5,}'
    assert parse_ai_response(text) == {"damageDescription": "Rear bumper, note: scratched", "amount": 5}


def test_trailing_comma_inside_string_is_kept():
    text = "{\"items\": \"a,]\", 'owner': 'x, y: z', 'n': NaN,}"
    assert parse_ai_response(text) == {"items": "a,]", "owner": "x, y: z", "n": None}


def test_deeply_nested_input_raises_parse_error():
    with pytest.raises(ResponseParseError) as exc_info:
        parse_ai_response("[" * 100000 + "]" * 100000)
    assert exc_info.value.context.details["attempts"][0]["method"] == "direct"


def test_python_style_literal_fallback():
    text = "{'approved': True, 'amount': None, 'tags': ['a', 'b']}"
    assert parse_ai_response(text) == {"approved": True, "amount": None, "tags": ["a", "b"]}


@pytest.mark.parametrize("text", [
    "I cannot help with that.",
    "",
    None,
    "{ this is not json at all",
])
def test_non_json_input_raises(text):
    with pytest.raises(ResponseParseError) as exc_info:
        parse_ai_response(text)
    assert "Failed to parse AI response as JSON after" in str(exc_info.value)


def test_code_like_content_is_never_evaluated():
    with pytest.raises(ResponseParseError):
        parse_ai_response("{'a': __import__('os').getcwd()}")


def test_error_details_carry_diagnostics():
    content = "The model refused to answer." * 20
    with pytest.raises(ResponseParseError) as exc_info:
        parse_ai_response(content)
    details = exc_info.value.context.details
    assert details["content_length"] == len(content)
    assert details["head"] == content[:200]
    assert len(details["attempts"]) >= 2


def test_extract_balanced_span_prefers_first_opener():
    assert AIResponseParser.extract_balanced_span('x [1, {"a": 2}] y {"b": 3}') == '[1, {"a": 2}]'
    assert AIResponseParser.extract_balanced_span('{"open": ') is None
    assert AIResponseParser.extract_balanced_span("no json") is None


def test_validate_json_structure():
    data = {"riskLevel": "low"}
    assert AIResponseParser.validate_json_structure(data, ["riskLevel"], stage="fraud assessment") is data

    with pytest.raises(StageValidationError) as exc_info:
        AIResponseParser.validate_json_structure({"riskScore": 3}, ["riskLevel"], stage="fraud assessment")
    assert str(exc_info.value) == "Invalid fraud assessment structure: missing riskLevel"

    with pytest.raises(StageValidationError):
        AIResponseParser.validate_json_structure([1, 2], ["riskLevel"])
