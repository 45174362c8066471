import pytest

from notegen.services.parsing import parse_choice, split_summary, try_parse_json


def test_summary_is_text_before_first_header():
    text = "Quick sync on the launch.\n\n## Key Points\n- one\n\n## Action Items\n- two"
    summary, body = split_summary(text)
    assert summary == "Quick sync on the launch."
    assert body.startswith("## Key Points")
    assert "## Action Items" in body


def test_leading_summary_heading_is_dropped():
    text = "## Summary\nWe agreed on pricing.\n\n## Decisions\n- Keep the free tier"
    summary, body = split_summary(text)
    assert summary == "We agreed on pricing."
    assert body.startswith("## Decisions")


def test_no_headers_falls_back_to_first_line():
    text = "- First real line of output\n- second line"
    summary, body = split_summary(text, fallback_chars=10)
    assert summary == "First real"
    assert body == text


def test_header_first_falls_back_to_first_content_line():
    text = "## Key Points\n- Budget approved\n## Action Items\n- none"
    summary, body = split_summary(text)
    assert summary == "Budget approved"
    assert body == text


@pytest.mark.parametrize("text", ["", "   \n\n  ", None])
def test_empty_output_does_not_raise(text):
    assert split_summary(text) == ("", "")


@pytest.mark.parametrize("text", ["####", "## \n##", "```\n{}\n```", "\x00\x01 ## Key", "#" * 500])
def test_malformed_output_does_not_raise(text):
    summary, body = split_summary(text)
    assert isinstance(summary, str)
    assert isinstance(body, str)
    assert len(summary) <= 200


def test_try_parse_json_salvages_embedded_object():
    assert try_parse_json('{"number": 2}') == {"number": 2}
    assert try_parse_json('Sure! {"number": 3, "confidence": "high"} hope it helps') == {
        "number": 3,
        "confidence": "high",
    }
    assert try_parse_json('x {"a": {"b": 1}} y') == {"a": {"b": 1}}
    assert try_parse_json("no json here") is None
    assert try_parse_json("[1, 2]") is None


IDS = ("work", "personal", "clients")


def test_choice_from_structured_object():
    assert parse_choice('{"number": 3, "confidence": "HIGH", "reason": "client call"}', IDS) == (
        2,
        "high",
        "client call",
    )


def test_choice_by_id_and_unknown_confidence():
    assert parse_choice('{"id": "personal", "confidence": "certain"}', IDS) == (1, "medium", "")


def test_choice_explicit_no_match():
    assert parse_choice('{"number": 0, "confidence": "low"}', IDS) is None
    assert parse_choice('{"number": 9, "confidence": "high"}', IDS) is None


def test_choice_bare_number_is_medium():
    assert parse_choice("2", IDS) == (1, "medium", "")
    assert parse_choice("1. Work fits best", IDS) == (0, "medium", "")


def test_choice_ignores_digits_inside_prose():
    assert parse_choice("Folder 1 fits best.", IDS) is None
    assert parse_choice("Q3 planning sounds like clients", IDS) is None


def test_choice_object_without_choice_ignores_digits():
    assert parse_choice('{"reason": "Q3 planning"}', IDS) is None
    assert parse_choice('2 {"confidence": "high"}', IDS) is None


@pytest.mark.parametrize("text", ["", "none of these", "{broken json", "42", "-"])
def test_choice_total_failure_is_none(text):
    assert parse_choice(text, IDS) is None


def test_choice_with_no_options():
    assert parse_choice('{"number": 1}', ()) is None
