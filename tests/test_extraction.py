"""Unit tests for gazette.editorial.extraction."""

import json

import pytest

from gazette.editorial.extraction import (
    ExtractionError,
    NoStructuredDataError,
    balance_braces,
    brace_span,
    escape_control_chars,
    extract_json,
    fenced_block,
    strip_trailing_commas,
)


def test_plain_json_round_trips():
    payload = {"0": "First headline", "1": "Second", "nested": {"a": [1, 2]}}
    assert extract_json(json.dumps(payload)) == payload


def test_prose_around_object_is_ignored():
    text = 'Sure! Here are your headlines:\n{"0": "A", "1": "B"}\nLet me know if you need more.'
    assert extract_json(text) == {"0": "A", "1": "B"}


def test_fenced_block_preferred():
    text = 'Notes {not json}\n```json\n{"0": "A"}\n```'
    assert extract_json(text) == {"0": "A"}


def test_fenced_block_with_trailing_comma():
    text = '```\n{"reviewed": {"m1": "Text",},}\n```'
    assert extract_json(text) == {"reviewed": {"m1": "Text"}}


def test_trailing_commas_removed():
    assert extract_json('{"0": "A", "1": "B",}') == {"0": "A", "1": "B"}
    assert extract_json('{"list": [1, 2, 3,],}') == {"list": [1, 2, 3]}


def test_raw_newlines_inside_strings_are_escaped():
    text = '{"0": "First paragraph.\n\nSecond paragraph.\tEnd"}'
    assert extract_json(text) == {"0": "First paragraph.\n\nSecond paragraph.\tEnd"}


def test_missing_closing_brace_is_repaired():
    assert extract_json('{"0":"A","1":"B"') == {"0": "A", "1": "B"}


def test_truncated_mid_string_is_repaired():
    result = extract_json('{"0": "Complete text", "1": "Cut off mid-sen')
    assert result == {"0": "Complete text", "1": "Cut off mid-sen"}


def test_truncated_after_escaped_quote_is_repaired():
    assert extract_json(r'{"0":"A","1":"say \"hi') == {"0": "A", "1": 'say "hi'}


def test_truncated_after_backslash_is_repaired():
    assert extract_json('{"0":"A","1":"path C:\\') == {"0": "A", "1": "path C:"}


def test_braces_inside_a_truncated_string_are_not_counted():
    assert balance_braces('{"0": "set {x') == '{"0": "set {x"}'


def test_braces_inside_strings_do_not_end_the_span():
    text = 'prefix {"0": "uses {curly} braces"} suffix {"other": 1}'
    assert brace_span(text) == '{"0": "uses {curly} braces"}'
    assert extract_json(text) == {"0": "uses {curly} braces"}


def test_no_structured_data():
    with pytest.raises(NoStructuredDataError):
        extract_json("I could not write headlines today.")
    with pytest.raises(NoStructuredDataError):
        extract_json("")


def test_unrepairable_raises_extraction_error():
    with pytest.raises(ExtractionError) as exc_info:
        extract_json('{"0": "A" "1": "B"}')
    assert exc_info.value.text == '{"0": "A" "1": "B"}'


def test_non_object_payload_rejected():
    with pytest.raises(ExtractionError):
        extract_json('```json\n[{"0": "A"}]\n```')


def test_repairs_are_usable_individually():
    assert fenced_block("no fence here") is None
    assert strip_trailing_commas('{"a": 1,\r\n}') == '{"a": 1\n}'
    assert escape_control_chars('{"a": "x\ny"}') == '{"a": "x\\ny"}'
    assert balance_braces('{"a": {"b": 1') == '{"a": {"b": 1}}'
    assert balance_braces('{"a": 1}') == '{"a": 1}'
