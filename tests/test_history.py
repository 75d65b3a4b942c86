import datetime as dt

from app.models import Message
from app.planner.history import (
    build_weighted_history,
    format_history_for_prompt,
    is_awaiting_draft_confirmation,
    is_awaiting_draft_content,
)


def _msg(i: int, direction: str, text: str, meta=None) -> Message:
    return Message(
        phone="5550000001",
        direction=direction,
        text=text,
        meta=meta,
        created_at=dt.datetime(2026, 1, 1, 12, i, tzinfo=dt.timezone.utc),
    )


def test_weights_decay_from_newest():
    messages = [_msg(i, "inbound" if i % 2 == 0 else "outbound", f"m{i}") for i in range(5)]
    turns = build_weighted_history(messages)
    assert [t.weight for t in turns] == [0.2, 0.4, 0.6, 0.8, 1.0]
    assert turns[-1].content == "m4"
    assert turns[0].role == "user"
    assert turns[1].role == "assistant"


def test_only_five_newest_are_kept():
    messages = [_msg(i, "inbound", f"m{i}") for i in range(8)]
    turns = build_weighted_history(messages)
    assert [t.content for t in turns] == ["m3", "m4", "m5", "m6", "m7"]


def test_short_history_starts_at_full_weight():
    turns = build_weighted_history([_msg(0, "inbound", "hi"), _msg(1, "outbound", "sup")])
    assert [t.weight for t in turns] == [0.8, 1.0]
    assert build_weighted_history([]) == []


def test_outbound_meta_becomes_action():
    turns = build_weighted_history(
        [
            _msg(0, "outbound", "what do you wanna announce?", {"action": "draft_write", "draft_type": "announcement"}),
            _msg(1, "outbound", "???", {"action": "mystery"}),
        ]
    )
    assert turns[0].action == "draft_write"
    assert turns[1].action is None


def test_awaiting_helpers_read_last_bot_line():
    asked = build_weighted_history(
        [_msg(0, "inbound", "make an announcement"), _msg(1, "outbound", "what do you wanna announce?")]
    )
    assert is_awaiting_draft_content(asked)
    assert not is_awaiting_draft_confirmation(asked)

    preview = build_weighted_history(
        [_msg(0, "outbound", 'here\'s the announcement... reply "send" to blast it out')]
    )
    assert is_awaiting_draft_confirmation(preview)


def test_prompt_format_labels_roles():
    turns = build_weighted_history([_msg(0, "inbound", "hi"), _msg(1, "outbound", "sup")])
    text = format_history_for_prompt(turns, bot_name="Jarvis")
    assert text.splitlines() == ["[weight 0.8] User: hi", "[weight 1.0] Jarvis: sup"]
