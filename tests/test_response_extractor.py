import json

import pytest

from prreview.response_extractor import (
    NO_RESPONSE_SUMMARY,
    create_pending_review,
    extract_json_from_response,
    mark_failed,
    mark_running,
    normalize_review,
    parse_ai_review_response,
)


@pytest.fixture
def pending():
    return create_pending_review(42, "octo/repo", "azure")


def test_extract_from_fenced_block():
    raw = 'Here you go:\n```json\n{"summary":"ok","comments":[]}\n```\nThanks'
    assert extract_json_from_response(raw) == '{"summary":"ok","comments":[]}'


def test_extract_skips_fenced_blocks_that_are_not_objects():
    raw = '```python\nprint(1)\n```\n```\n{"summary": "second"}\n```'
    assert extract_json_from_response(raw) == '{"summary": "second"}'


def test_extract_balanced_object_from_prose():
    raw = 'Some notes\n{"summary":"ok"}\nmore notes'
    assert extract_json_from_response(raw) == '{"summary":"ok"}'


def test_extract_balanced_object_stops_at_matching_brace():
    raw = '{"summary": "x", "comments": [{"line": 1}]} trailing } brace'
    assert extract_json_from_response(raw) == '{"summary": "x", "comments": [{"line": 1}]}'


def test_extract_widest_span_without_summary():
    raw = 'prefix {"a": 1} middle {"b": 2} suffix'
    assert extract_json_from_response(raw) == '{"a": 1} middle {"b": 2}'


def test_extract_returns_none_without_braces():
    assert extract_json_from_response("No structured output here") is None
    assert extract_json_from_response("") is None


def test_extract_truncated_output():
    assert extract_json_from_response('{"summary": "cut off", "comments": [') is None
    assert extract_json_from_response('{"summary": "cut", "x": {"y": 1}') == '{"summary": "cut", "x": {"y": 1}'


def test_pending_review_lifecycle(pending):
    assert pending.status == "pending"
    assert pending.completed_at is None

    running = mark_running(pending)
    failed = mark_failed(running, "boom")
    assert running.status == "running"
    assert failed.status == "failed"
    assert failed.error == "boom"
    assert failed.completed_at is not None
    assert pending.status == "pending"

    with pytest.raises(ValueError):
        mark_running(failed)


def test_normalize_full_payload(pending):
    raw = json.dumps({
        "summary": "Looks good",
        "overallScore": 8,
        "comments": [
            {"path": "a.py", "line": 3, "severity": "warning", "category": "security", "body": "Check input"},
            {"path": "b.py", "line": "7", "severity": "HIGH", "body": "Odd severity", "side": "LEFT", "extra": 1},
        ],
        "suggestions": [
            {"path": "a.py", "startLine": 1, "endLine": 2, "suggestedCode": "x = 2", "explanation": "why"},
        ],
        "unknownField": True,
    })
    result = parse_ai_review_response(raw, pending)

    assert result.status == "completed"
    assert result.id == pending.id
    assert result.created_at == pending.created_at
    assert result.completed_at is not None
    assert result.summary == "Looks good"
    assert result.overall_score == 8

    first, second = result.comments
    assert first.id == f"{pending.id}-comment-0"
    assert first.side == "RIGHT"
    assert first.severity == "warning"
    assert second.id == f"{pending.id}-comment-1"
    assert second.line == 7
    assert second.severity == "info"
    assert second.side == "LEFT"

    suggestion = result.suggestions[0]
    assert suggestion.id == f"{pending.id}-suggestion-0"
    assert (suggestion.start_line, suggestion.end_line) == (1, 2)
    assert suggestion.suggested_code == "x = 2"


def test_invalid_comment_is_skipped_but_keeps_positions(pending):
    raw = '{"summary": "s", "comments": [{"line": 1}, "text", {"path": "c.py", "line": 2, "body": "ok"}]}'
    result = parse_ai_review_response(raw, pending)
    assert [c.id for c in result.comments] == [f"{pending.id}-comment-2"]


def test_structured_suggestion_is_kept_as_text(pending):
    payload = {
        "summary": "s",
        "comments": [
            {"path": "a.py", "line": 3, "body": "Use a constant", "suggestion": {"code": "LIMIT = 10"}},
            {"path": "b.py", "line": 4, "body": "Off by one", "suggestion": 42},
        ],
    }
    result = parse_ai_review_response(json.dumps(payload), pending)

    first, second = result.comments
    assert json.loads(first.suggestion) == {"code": "LIMIT = 10"}
    assert second.suggestion == "42"


def test_no_candidate_uses_raw_text(pending):
    result = normalize_review("Just prose, no JSON.", None, pending)
    assert result.status == "completed"
    assert result.summary == "Just prose, no JSON."
    assert result.comments == []
    assert result.suggestions == []


def test_empty_output_uses_placeholder(pending):
    result = parse_ai_review_response("", pending)
    assert result.status == "completed"
    assert result.summary == NO_RESPONSE_SUMMARY


def test_unparseable_candidate_is_tagged(pending):
    raw = "x" * 300 + ' {"summary": oops}'
    result = parse_ai_review_response(raw, pending)
    assert result.status == "completed"
    assert result.summary.startswith("Failed to parse response: ")
    assert result.summary.endswith("...")
    assert len(result.summary) == len("Failed to parse response: ") + 200 + 3


@pytest.mark.parametrize("raw", [
    "",
    "prose only",
    '{"summary": "truncated", "comments": [',
    '{"summary": "missing brace", "score": {"x": 1}',
    "{not json at all}",
    "[1, 2, 3]",
    '{"summary": 5, "overallScore": "high", "comments": {"not": "a list"}}',
    "{" * 5000 + "}" * 5000,
])
def test_normalize_never_raises(pending, raw):
    result = parse_ai_review_response(raw, pending)
    assert result.status == "completed"
