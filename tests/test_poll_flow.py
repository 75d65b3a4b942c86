from sqlalchemy import select

from app.models import PollResponse
from app.planner.actions.poll_response import handle_poll_response
from app.planner.types import Classification, PlannerContext
from conftest import ADMIN_PHONE, MEMBER_PHONES

BEN = MEMBER_PHONES[0]


def _open_poll(planner, text="poll mandatory practice saturday, can you make it"):
    planner.handle(ADMIN_PHONE, text)
    planner.handle(ADMIN_PHONE, "send")


def _response(deps, phone):
    return deps.polls.get_response(deps.polls.get_active(), phone)


def test_plain_answer_is_recorded(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    result = planner.handle(BEN, "yes but running late")
    assert result.action == "poll_response"
    assert "recorded: Yes" in result.response
    response = _response(seeded, BEN)
    assert response.verdict == "Yes"
    assert response.note == "but running late"


def test_mandatory_no_asks_for_reason_then_records_it(planner, seeded):
    _open_poll(planner)
    first = planner.handle(BEN, "no")
    assert "what's the reason" in first.response
    assert first.meta.awaiting_excuse is True
    assert seeded.polls.is_pending_excuse(seeded.polls.get_active(), BEN)

    second = planner.handle(BEN, "i have a work shift")
    assert second.action == "poll_response"
    response = _response(seeded, BEN)
    assert response.verdict == "No"
    assert response.note == "i have a work shift"
    assert not seeded.polls.is_pending_excuse(seeded.polls.get_active(), BEN)


def test_pending_excuse_can_flip_to_yes(planner, seeded):
    _open_poll(planner)
    planner.handle(BEN, "no")
    planner.handle(BEN, "yes actually i can come")
    assert _response(seeded, BEN).verdict == "Yes"


def test_bare_no_while_pending_asks_again(planner, seeded):
    _open_poll(planner)
    planner.handle(BEN, "no")
    again = planner.handle(BEN, "nope")
    assert "what's the reason" in again.response
    assert _response(seeded, BEN).note is None


def test_questions_skip_the_poll_fast_path(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    result = planner.handle(BEN, "when is the pizza thing?")
    assert result.action == "content_query"
    assert _response(seeded, BEN) is None


def test_admin_command_beats_poll_fast_path(planner, seeded):
    seeded.polls.create("pizza friday?", created_by="5550009999")
    seeded.session.commit()

    result = planner.handle(ADMIN_PHONE, "announce no practice tomorrow")
    assert result.action == "draft_write"
    assert seeded.drafts.get_active(ADMIN_PHONE).content == "no practice tomorrow"
    assert _response(seeded, ADMIN_PHONE) is None


def test_content_question_beats_poll_keywords(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    result = planner.handle(BEN, "whats going on tonight")
    assert result.action == "content_query"
    assert _response(seeded, BEN) is None


def test_member_phrasing_like_an_admin_command_is_still_an_answer(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    result = planner.handle(BEN, "tell everyone i'm not coming")
    assert result.action == "poll_response"
    assert _response(seeded, BEN).verdict == "No"


def test_answered_member_is_classified_normally(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    planner.handle(BEN, "yes")
    result = planner.handle(BEN, "what can you do")
    assert result.action == "capability_query"


def test_creator_is_not_treated_as_responder(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    result = planner.handle(ADMIN_PHONE, "yes")
    assert result.action != "poll_response"
    assert _response(seeded, ADMIN_PHONE) is None


def _ctx(deps, message):
    poll = deps.polls.get_active()
    return PlannerContext(
        phone=BEN,
        message=message,
        space_id=None,
        member=deps.members.get(BEN),
        is_admin=False,
        history=[],
        active_draft=None,
        active_poll=poll,
        pending_excuse=False,
        classification=Classification("poll_response", 0.9),
    )


def test_handler_without_poll(seeded):
    result = handle_poll_response(_ctx(seeded, "yes"), seeded)
    assert result.response == "no active poll right now"


def test_handler_reasks_unknown_answer(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    result = handle_poll_response(_ctx(seeded, "banana"), seeded)
    assert "reply yes, no or maybe" in result.response
    assert "who's down for pizza friday?" in result.response
    assert _response(seeded, BEN) is None


def test_second_answer_updates_the_same_row(planner, seeded):
    _open_poll(planner, "poll who's down for pizza friday")
    planner.handle(BEN, "yes")
    result = handle_poll_response(_ctx(seeded, "actually maybe"), seeded)
    assert result.meta.verdict == "Maybe"
    rows = seeded.session.execute(select(PollResponse)).scalars().all()
    assert len(rows) == 1
    assert rows[0].verdict == "Maybe"
