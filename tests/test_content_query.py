import datetime as dt

import pytest

from app.planner.actions.content import (
    format_results_for_prompt,
    get_next_occurrence,
    result_priority,
)
from app.planner.service import PlannerService
from app.search import ContentResult, FactRecord
from conftest import ADMIN_PHONE, MEMBER_PHONES, FakeLLM, fixed_clock

BEN = MEMBER_PHONES[0]
TODAY = dt.date(2026, 10, 16)  # a Friday
NOW = dt.datetime(2026, 10, 16, 18, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def facts(fact_store):
    fact_store.add_facts(
        [
            FactRecord(
                content="ski retreat is jan 16-19 in utah",
                category="event",
                subcategory="ski retreat",
                date_str="2027-01-16",
            ),
            FactRecord(
                content="active meeting every wednesday at 8pm",
                category="recurring",
                subcategory="active meeting",
                time_ref="8pm",
                date_str="recurring:wednesday",
            ),
        ]
    )
    return fact_store


@pytest.mark.parametrize(
    ("date_str", "expected"),
    [
        ("recurring:wednesday", dt.date(2026, 10, 21)),
        ("recurring:Friday", dt.date(2026, 10, 23)),
        ("recurring:saturday", dt.date(2026, 10, 17)),
        ("recurring:someday", None),
        ("2026-10-20", None),
        (None, None),
    ],
)
def test_next_occurrence_is_strictly_after_today(date_str, expected):
    assert get_next_occurrence(date_str, TODAY) == expected


def test_result_priority_orders_upcoming_first():
    upcoming = ContentResult("retreat", "b", 0.1, date_str="2027-01-16", source="keyword")
    recurring = ContentResult("meeting", "b", 0.1, date_str="recurring:wednesday", source="vector")
    past_date = ContentResult("old", "b", 0.1, date_str="2025-01-01", source="vector")
    plain = ContentResult("parking", "b", 0.1, source="keyword")
    broadcast = ContentResult("Announcement", "b", 0.5, source="announcement")

    assert result_priority(upcoming, TODAY) == 4
    assert result_priority(recurring, TODAY) == 3
    assert result_priority(past_date, TODAY) == 2
    assert result_priority(plain, TODAY) == 2
    assert result_priority(broadcast, TODAY) == 1


def test_prompt_block_labels_each_result_type():
    text = format_results_for_prompt(
        [
            ContentResult("meeting", "📋 meeting", 1.0, date_str="recurring:wednesday"),
            ContentResult("retreat", "📋 retreat", 1.0, date_str="2027-01-16"),
            ContentResult("Poll", "📊 who's in?", 0.5, source="poll"),
        ],
        TODAY,
    )
    assert "Type: RECURRING" in text
    assert "Next occurrence: Wednesday 2026-10-21" in text
    assert "Type: EVENT (2027-01-16)" in text
    assert "Type: POLL" in text


def test_member_question_answered_from_facts(planner, seeded, facts):
    result = planner.handle(BEN, "when is the ski retreat")
    assert result.action == "content_query"
    assert "ski retreat is jan 16-19 in utah" in result.response
    assert result.meta.result_count >= 1


def test_no_results_reply(planner, seeded):
    result = planner.handle(BEN, "where is the zamboni parked")
    assert result.action == "content_query"
    assert "idk what you're asking about" in result.response


def test_model_composes_answer(make_deps, seeded, facts, monkeypatch):
    monkeypatch.setenv("OPENAI_LANG", "en")
    llm = FakeLLM(text_replies={"content_answer": "active meeting is wednesday at 8pm"})
    planner = PlannerService(make_deps(llm=llm, clock=fixed_clock(NOW)))
    result = planner.handle(BEN, "when is active meeting")
    assert "active meeting is wednesday at 8pm" in result.response

    task, system, user = next(call for call in llm.calls if call[0] == "content_answer")
    assert "Friday" in system
    assert "2026-10-16" in system
    assert "Reply in en." in system
    assert "Next occurrence: Wednesday 2026-10-21" in user


def test_what_did_you_just_send(planner, seeded):
    planner.handle(ADMIN_PHONE, "announce practice moved to 6pm at the gym")
    planner.handle(ADMIN_PHONE, "send")
    result = planner.handle(ADMIN_PHONE, "what did you just send")
    assert result.action == "content_query"
    assert 'i just sent out: "practice moved to 6pm at the gym"' in result.response


def test_past_broadcasts_are_searchable(planner, seeded):
    planner.handle(ADMIN_PHONE, "announce practice moved to 6pm at the gym")
    planner.handle(ADMIN_PHONE, "send")
    result = planner.handle(BEN, "where is practice")
    assert "📢 practice moved to 6pm at the gym" in result.response
