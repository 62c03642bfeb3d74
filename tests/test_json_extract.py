import json
import logging

import pytest

from json_extract import escape_newlines_in_strings, extract_json, looks_like_refusal, strip_code_fence

_STEPS_JSON = '[{"stepNumber": 1, "title": "Define Research Problem", "details": "Pick a question."}]'


# ---------------------------------------------------------------------------
# Empty input and fences
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw", [None, "", "   \n  "])
def test_extract_json_returns_none_for_empty_input(raw: str | None) -> None:
    assert extract_json(raw, "stepPlan") is None


@pytest.mark.parametrize("fenced", [
    f"```json\n{_STEPS_JSON}\n```",
    f"```JSON\n{_STEPS_JSON}\n```\n",
    f"```\n{_STEPS_JSON}\n```",
    f"  ```json\n\n{_STEPS_JSON}\n\n```  ",
])
def test_fenced_and_unfenced_text_parse_identically(fenced: str) -> None:
    assert extract_json(fenced, "stepPlan") == extract_json(_STEPS_JSON, "stepPlan")
    assert extract_json(fenced, "stepPlan") == json.loads(_STEPS_JSON)


def test_strip_code_fence_removes_only_one_leading_and_trailing_marker() -> None:
    text = '```json\n{"code": "```"}\n```'
    assert strip_code_fence(text) == '{"code": "```"}'


def test_strip_code_fence_leaves_unfenced_text_alone() -> None:
    assert strip_code_fence('  {"a": 1}\n') == '{"a": 1}'


# ---------------------------------------------------------------------------
# Refusal short-circuit
# ---------------------------------------------------------------------------

def test_short_refusal_returns_none_without_parsing(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="json_extract"):
        result = extract_json("Sorry, I cannot help with that request.", "methodology")

    assert result is None
    assert "looks like plain text" in caplog.text
    assert "methodology" in caplog.text
    assert "repair" not in caplog.text


def test_looks_like_refusal_ignores_json_and_long_text() -> None:
    assert looks_like_refusal('{"error": "sorry"}') is False
    assert looks_like_refusal("sorry " * 50) is False
    assert looks_like_refusal("I apologize, but I am unable to comply.") is True


def test_scalar_json_without_refusal_wording_still_parses() -> None:
    assert extract_json("42", "scalar") == 42


# ---------------------------------------------------------------------------
# Field-scoped newline repair
# ---------------------------------------------------------------------------

def test_repairs_literal_newline_inside_string_value() -> None:
    broken = '{"selectedApproach": "Mixed methods\nwith interviews", "n": 2}'
    pre_escaped = '{"selectedApproach": "Mixed methods\\nwith interviews", "n": 2}'

    assert extract_json(broken, "methodology") == json.loads(pre_escaped)


def test_repair_keeps_text_outside_string_spans_byte_identical() -> None:
    text = '{\n  "details": "line one\nline two",\n  "title": "ok"\n}'

    repaired = escape_newlines_in_strings(text)

    assert repaired == '{\n  "details": "line one\\nline two",\n  "title": "ok"\n}'


def test_repair_leaves_existing_escape_sequences_untouched() -> None:
    text = '{"a": "already\\nescaped \\"quoted\\"", "b": "raw\nbreak"}'

    repaired = escape_newlines_in_strings(text)

    assert repaired == '{"a": "already\\nescaped \\"quoted\\"", "b": "raw\\nbreak"}'


def test_repair_handles_apostrophes_inside_double_quoted_values() -> None:
    broken = '[{"title": "Researcher\'s notes", "details": "It\'s\nmultiline"}]'

    assert extract_json(broken, "stepPlan") == [
        {"title": "Researcher's notes", "details": "It's\nmultiline"}
    ]


def test_repair_escapes_crlf_inside_string_values() -> None:
    assert extract_json('{"a": "one\r\ntwo"}', "gapAnalysis") == {"a": "one\ntwo"}


# ---------------------------------------------------------------------------
# Unrecoverable input
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("raw", [
    '[{"a":1,]',
    '{"pros": ["one", "two"',
    "This is a long narrative answer that never turns into JSON. " * 5,
])
def test_invalid_json_returns_none_without_raising(raw: str) -> None:
    assert extract_json(raw, "prosAndCons") is None


def test_final_failure_logs_bounded_prefix(caplog: pytest.LogCaptureFixture) -> None:
    raw = '{"a": [' + "1," * 1000

    with caplog.at_level(logging.ERROR, logger="json_extract"):
        assert extract_json(raw, "rankedPapers") is None

    problem_lines = [r.getMessage() for r in caplog.records if "Problematic text" in r.getMessage()]
    assert len(problem_lines) == 1
    assert "rankedPapers" in problem_lines[0]
    assert len(problem_lines[0]) < 600


def test_inline_error_marker_parses_as_generic_object() -> None:
    marker = json.dumps([{"error": "Failed to rank and summarize research papers."}])
    assert extract_json(marker, "rankedPapers") == [
        {"error": "Failed to rank and summarize research papers."}
    ]
