from sqlalchemy import func, select

from app.models import Member, Message
from app.planner.service import FALLBACK_REPLY, PlannerService, looks_like_name
from conftest import ADMIN_PHONE, MEMBER_PHONES

NEWCOMER = "+1 (555) 000-0099"


class ExplodingClassifier:
    def classify(self, context):
        raise RuntimeError("classifier exploded")


def _message_count(session):
    return session.execute(select(func.count(Message.id))).scalar_one()


def test_newcomer_is_asked_for_a_name(planner, deps):
    first = planner.handle(NEWCOMER, "hi")
    assert first.response == "hey! i'm jarvis, powered by enclave. what's your name?"
    member = deps.members.get("5550000099")
    assert member.needs_name

    second = planner.handle(NEWCOMER, "Dana")
    assert second.response.startswith("nice to meet you Dana!")
    member = deps.members.get("5550000099")
    assert member.name == "Dana"
    assert not member.needs_name


def test_newcomer_giving_name_up_front(planner, deps):
    result = planner.handle(NEWCOMER, "Dana Scully")
    assert result.response.startswith("hey Dana Scully! 👋 you're all set")
    assert deps.members.get(NEWCOMER).name == "Dana Scully"


def test_allowlisted_newcomer_becomes_admin(planner, deps):
    result = planner.handle(ADMIN_PHONE, "Ava")
    assert "you're set up as an admin" in result.response
    assert 'announce [message]' in result.response
    assert deps.members.get(ADMIN_PHONE).role == "admin"


def test_looks_like_name():
    assert looks_like_name("Dana")
    assert looks_like_name("Mary-Jane O'Neil")
    assert not looks_like_name("yes")
    assert not looks_like_name("announce bbq")
    assert not looks_like_name("555")
    assert not looks_like_name("when is practice at the gym tonight")


def test_stop_and_start(planner, seeded, sender):
    stop = planner.handle(MEMBER_PHONES[0], "STOP")
    assert "unsubscribed" in stop.response
    planner.handle(ADMIN_PHONE, "announce practice moved to 6pm at the gym")
    planner.handle(ADMIN_PHONE, "send")
    assert [phone for phone, _ in sender.sent] == [MEMBER_PHONES[1]]

    start = planner.handle(MEMBER_PHONES[0], "start")
    assert "welcome back" in start.response
    assert not seeded.members.get(MEMBER_PHONES[0]).opted_out


def test_both_sides_of_the_exchange_are_logged(planner, seeded):
    planner.handle(MEMBER_PHONES[0], "what can you do")
    rows = seeded.messages.recent(MEMBER_PHONES[0], 5)
    assert [m.direction for m in rows] == ["inbound", "outbound"]
    assert rows[0].text == "what can you do"
    assert rows[1].meta["action"] == "capability_query"


def test_failure_rolls_back_and_apologises(deps, seeded):
    before = _message_count(seeded.session)
    planner = PlannerService(deps, classifier=ExplodingClassifier())
    result = planner.handle(MEMBER_PHONES[0], "tell me something")
    assert result.response == FALLBACK_REPLY
    assert result.action == "chat"
    assert _message_count(seeded.session) == before


def test_empty_message_is_answered(planner, seeded):
    result = planner.handle(MEMBER_PHONES[0], "   ")
    assert result.action == "chat"
    assert result.response


def test_capability_answers(planner, seeded):
    admin = planner.handle(ADMIN_PHONE, "what can you do")
    assert "send announcements" in admin.response
    member = planner.handle(MEMBER_PHONES[0], "what can you do")
    assert "send announcements" not in member.response
    assert "respond to polls" in member.response
    bot = planner.handle(MEMBER_PHONES[0], "are you a bot")
    assert "yeah i'm a bot. jarvis" in bot.response


def test_chat_quick_reply_and_confused_fallback(planner, seeded):
    quick = planner.handle(MEMBER_PHONES[0], "bet")
    assert quick.response in ("bet", "👍", "cool")
    confused = planner.handle(MEMBER_PHONES[0], "purple elephants dancing")
    assert confused.action == "chat"
    assert confused.response


def test_chat_reminds_about_ready_draft(planner, seeded):
    planner.handle(ADMIN_PHONE, "announce practice moved to 6pm at the gym")
    result = planner.handle(ADMIN_PHONE, "purple elephants dancing")
    assert "you still have a announcement draft" in result.response


# ---------------------------------------------------------------------------
# Space mode
# ---------------------------------------------------------------------------


def test_space_roles_come_from_membership(make_deps, session):
    deps = make_deps(space_id="space-a")
    deps.members.create(MEMBER_PHONES[0], name="Ben", role="admin")
    deps.members.create(ADMIN_PHONE, name="Ava")
    deps.members.create(MEMBER_PHONES[1], name="Cy")
    session.commit()
    planner = PlannerService(deps)

    allowlisted = planner.handle(ADMIN_PHONE, "announce free pizza")
    assert allowlisted.action == "chat"

    admin = planner.handle(MEMBER_PHONES[0], "announce free pizza in the lobby")
    assert admin.action == "draft_write"
    draft = deps.drafts.get_active(MEMBER_PHONES[0])
    assert draft.space_id == "space-a"


def test_spaces_do_not_share_members(make_deps, session):
    space_a = make_deps(space_id="space-a")
    space_a.members.create(MEMBER_PHONES[0], name="Ben")
    session.commit()
    space_b = make_deps(space_id="space-b")
    assert space_b.members.get(MEMBER_PHONES[0]) is None
    assert make_deps().members.get(MEMBER_PHONES[0]) is None


def test_space_broadcast_stays_in_space(make_deps, session, sender):
    deps = make_deps(space_id="space-a")
    deps.members.create(ADMIN_PHONE, name="Ava", role="admin")
    deps.members.create(MEMBER_PHONES[0], name="Ben")
    legacy = make_deps()
    legacy.members.create(MEMBER_PHONES[1], name="Cy")
    session.commit()

    planner = PlannerService(deps)
    planner.handle(ADMIN_PHONE, "announce practice moved to 6pm at the gym")
    planner.handle(ADMIN_PHONE, "send")
    assert session.execute(select(func.count(Member.id))).scalar_one() == 3
    assert [phone for phone, _ in sender.sent] == [MEMBER_PHONES[0]]
