import pytest

from app.planner.poll_parser import parse_poll_response, summarize_poll_responses


@pytest.mark.parametrize(
    ("text", "verdict", "note"),
    [
        ("yes", "Yes", None),
        ("Yep!", "Yes", None),
        ("y", "Yes", None),
        ("n", "No", None),
        ("nope", "No", None),
        ("maybe", "Maybe", None),
        ("idk depends on work", "Maybe", "depends on work"),
        ("yes but running late", "Yes", "but running late"),
        ("no, but I'll try to come late", "No", "but I'll try to come late"),
        ("running late", "Yes", "running late"),
        ("count me in", "Yes", None),
    ],
)
def test_verdicts_and_notes(text, verdict, note):
    parsed = parse_poll_response(text)
    assert parsed.verdict == verdict
    assert parsed.note == note


def test_keyword_mid_sentence_keeps_whole_reply_as_note():
    parsed = parse_poll_response("i can't make it, sick")
    assert parsed.verdict == "No"
    assert parsed.note == "i can't make it, sick"


def test_negative_wins_ties():
    assert parse_poll_response("yes no").verdict == "No"


@pytest.mark.parametrize("text", ["", "   ", "banana", "what time?"])
def test_unknown(text):
    parsed = parse_poll_response(text)
    assert parsed.verdict == "Unknown"
    assert not parsed.is_known


def test_summary_counts_each_verdict():
    summary = summarize_poll_responses(["Yes", "No", "Yes", "Maybe", "Unknown"])
    assert summary == {"yes": 2, "no": 1, "maybe": 1, "total": 5}
