"""Tests for the staged JSON recovery pipeline."""
import json

import pytest

from src.core.json_repair import (
    DEFAULT_STAGES,
    JsonExtractor,
    ParseFailure,
    RepairStage,
    close_truncated,
    collapse_duplicate_commas,
    collapse_numeric_ranges,
    convert_single_quotes,
    escape_control_characters,
    extract_json,
    insert_missing_commas,
    is_failure,
    isolate_json_span,
    quote_unquoted_keys,
    replace_smart_quotes,
    strip_code_fences,
    strip_currency_symbols,
    strip_non_printable,
    strip_trailing_commas,
)


# ---------------------------------------------------------------------------
# Individual repairs
# ---------------------------------------------------------------------------


def test_strip_code_fences_returns_fenced_block():
    text = 'Here you go:\n```json\n{"a": 1}\n```\nEnjoy!'
    assert strip_code_fences(text) == '{"a": 1}'


def test_strip_code_fences_drops_unclosed_fence():
    assert strip_code_fences('```json\n{"a": 1') == '{"a": 1'


def test_isolate_json_span_drops_surrounding_prose():
    text = 'Sure! {"a": {"b": "}"}} Let me know if you need more.'
    assert isolate_json_span(text) == '{"a": {"b": "}"}}'


def test_isolate_json_span_prefers_first_bracket():
    assert isolate_json_span('List: [1, 2] and {"x": 1}') == "[1, 2]"


def test_isolate_json_span_keeps_unbalanced_tail():
    assert isolate_json_span('Result: {"a": [1, 2') == '{"a": [1, 2'


def test_replace_smart_quotes():
    assert replace_smart_quotes("{“a”: “b”}") == '{"a": "b"}'


def test_convert_single_quotes_for_keys_and_values():
    assert json.loads(convert_single_quotes("{'name': 'Louvre', 'tags': ['art']}")) == {
        "name": "Louvre",
        "tags": ["art"],
    }


def test_convert_single_quotes_leaves_apostrophes_inside_strings():
    text = '{"name": "Chef\'s table"}'
    assert convert_single_quotes(text) == text


def test_escape_control_characters_only_inside_strings():
    text = '{\n"a": "line one\nline two"}'
    repaired = escape_control_characters(text)
    assert json.loads(repaired) == {"a": "line one\nline two"}
    assert repaired.startswith("{\n")


def test_strip_currency_symbols():
    assert json.loads(strip_currency_symbols('{"price": $1,200.50}')) == {"price": 1200.5}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"price": "35-40"}', {"price": 37.5}),
        ('{"price": 35-40}', {"price": 37.5}),
        ('{"price": "$10 - $20"}', {"price": 15}),
        ('{"price": "100 to 200"}', {"price": 150}),
    ],
)
def test_collapse_numeric_ranges(raw, expected):
    assert json.loads(collapse_numeric_ranges(raw)) == expected


def test_collapse_numeric_ranges_ignores_dates_and_descending_pairs():
    text = '{"date": "2025-06-01", "score": "40-35"}'
    assert collapse_numeric_ranges(text) == text


def test_quote_unquoted_keys():
    assert json.loads(quote_unquoted_keys('{name: "x", min_price: 1}')) == {"name": "x", "min_price": 1}


def test_quote_unquoted_keys_does_not_touch_string_content():
    text = '{"note": "open {daily, hours: 9-5}"}'
    assert quote_unquoted_keys(text) == text


def test_insert_missing_commas_between_objects():
    assert json.loads(insert_missing_commas('[{"a": 1} {"b": 2}]')) == [{"a": 1}, {"b": 2}]


def test_collapse_duplicate_commas():
    assert json.loads(collapse_duplicate_commas('[1,, 2,,,3]')) == [1, 2, 3]
    assert json.loads(collapse_duplicate_commas('[, 1]')) == [1]


def test_strip_trailing_commas():
    assert json.loads(strip_trailing_commas('{"a": [1, 2,], }')) == {"a": [1, 2]}


def test_strip_non_printable():
    assert strip_non_printable('{"a": "café"}') == '{"a": "caf "}'


# ---------------------------------------------------------------------------
# Truncation recovery
# ---------------------------------------------------------------------------


def test_close_truncated_drops_half_written_sibling():
    text = '{"items": [{"name": "a", "price": 1}, {"name": "b", "pri'
    closed = close_truncated(text)
    assert json.loads(closed) == {"items": [{"name": "a", "price": 1}]}


def test_close_truncated_keeps_scalar_siblings():
    assert json.loads(close_truncated('{"tags": ["art", "food", "mus')) == {"tags": ["art", "food"]}


def test_close_truncated_does_not_close_nested_objects():
    # Every usable cut would leave the "food" object with missing members.
    text = '{"food": {"budget": {"min": 10, "max": 20}, "medium": {"min": 20'
    assert close_truncated(text) is None


def test_close_truncated_ignores_nested_values_of_partial_object():
    text = '[{"name": "a", "price": 1}, {"name": "b", "tags": ["x", "y"], "pri'
    assert json.loads(close_truncated(text)) == [{"name": "a", "price": 1}]


def test_close_truncated_cuts_before_dangling_member():
    text = '{"a": 1, "b": {"c": 2}, "d": '
    assert json.loads(close_truncated(text)) == {"a": 1, "b": {"c": 2}}


def test_close_truncated_returns_none_for_balanced_text():
    assert close_truncated('{"a": 1}') is None


def test_close_truncated_returns_none_without_cut_point():
    assert close_truncated('{"a": "unterminated') is None


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


def test_valid_json_short_circuits_at_direct_stage():
    extractor = JsonExtractor()
    payload = {"flights": {"budget": {"min": 1}}}
    assert extractor.extract(json.dumps(payload)) == payload


def test_extraction_is_idempotent():
    raw = "```json\n{'price': '35-40', 'name': 'Tour',}\n```"
    first = extract_json(raw)
    assert first == {"price": 37.5, "name": "Tour"}
    assert extract_json(json.dumps(first)) == first


def test_malformed_llm_payload_is_recovered():
    raw = (
        "Here is the estimate you asked for:\n"
        "```json\n"
        "{\n"
        "  activities: {\n"
        "    “budget”: {min: 10, max: 30, average: \"15-25\", confidence: 0.8, source: 'web',},\n"
        "  }\n"
        "}\n"
        "```"
    )
    result = extract_json(raw)
    assert result == {
        "activities": {
            "budget": {"min": 10, "max": 30, "average": 20, "confidence": 0.8, "source": "web"}
        }
    }


def test_truncated_array_recovers_complete_items():
    raw = 'Activities: {"activities": [{"name": "Louvre", "price": 22}, {"name": "Seine Cruise", "price": 1'
    assert extract_json(raw) == {"activities": [{"name": "Louvre", "price": 22}]}


def test_prose_brackets_before_payload_are_skipped():
    assert isolate_json_span('Here {is} the data: {"a": 1}') == '{"a": 1}'
    assert extract_json('Here {is} the data: {"a": 1}') == {"a": 1}


def test_unparseable_spans_keep_the_longest_for_repair():
    raw = 'Note {x} below:\n{food: {budget: {min: 10, max: 20}}}'
    assert isolate_json_span(raw) == "{food: {budget: {min: 10, max: 20}}}"
    assert extract_json(raw) == {"food": {"budget": {"min": 10, "max": 20}}}


def test_truncated_array_drops_half_written_object():
    raw = '{"activities": [{"name": "Louvre", "price": 22}, {"na'
    assert extract_json(raw) == {"activities": [{"name": "Louvre", "price": 22}]}


@pytest.mark.parametrize("content", ["", "   ", None])
def test_empty_content_fails_at_first_stage(content):
    result = extract_json(content)
    assert isinstance(result, ParseFailure)
    assert result.stage == DEFAULT_STAGES[0].name
    assert result.message == "Empty content"


def test_prose_returns_typed_failure():
    result = extract_json("I'm sorry, I cannot provide prices for that destination.")
    assert is_failure(result)
    assert result.stage == "aggressive"
    assert result.content.startswith("I'm sorry")
    assert result.position is not None


def test_custom_stages_are_respected():
    extractor = JsonExtractor(stages=(RepairStage("direct", close_truncated=False),))
    result = extractor.extract('```json\n{"a": 1}\n```')
    assert is_failure(result)
    assert result.stage == "direct"


def test_extractor_requires_stages():
    with pytest.raises(ValueError):
        JsonExtractor(stages=())
