import datetime as dt
import json

from sqlalchemy import select

from app.maintenance import run_maintenance
from app.models import Draft, Message
from conftest import ADMIN_PHONE, MEMBER_PHONES

NOW = dt.datetime(2026, 10, 16, 18, 0, tzinfo=dt.timezone.utc)


def test_purges_stale_drafts_and_old_messages(session, settings):
    old = dt.datetime.now(dt.timezone.utc) - dt.timedelta(hours=settings.draft_stale_hours + 1)
    session.add_all(
        [
            Draft(owner_phone=ADMIN_PHONE, draft_type="announcement", content="x", status="ready", updated_at=old),
            Draft(owner_phone=MEMBER_PHONES[0], draft_type="poll", content="y?", status="ready"),
            Draft(owner_phone=MEMBER_PHONES[1], draft_type="poll", content="z?", status="sent", updated_at=old),
            Message(phone=ADMIN_PHONE, direction="inbound", text="ancient", created_at=NOW - dt.timedelta(days=31)),
            Message(phone=ADMIN_PHONE, direction="inbound", text="recent", created_at=NOW - dt.timedelta(days=2)),
        ]
    )
    session.commit()

    report = run_maintenance(session, settings, now=NOW)
    assert report.stale_drafts == 1
    assert report.expired_messages == 1

    session.expire_all()
    remaining = {d.content for d in session.execute(select(Draft)).scalars()}
    assert remaining == {"y?", "z?"}
    assert [m.text for m in session.execute(select(Message)).scalars()] == ["recent"]


def test_nothing_to_do(session, settings):
    report = run_maintenance(session, settings, now=NOW)
    assert (report.stale_drafts, report.expired_messages) == (0, 0)


def test_cli_reports_counts(tmp_path, capsys, monkeypatch):
    from app.maintenance import main
    from app.models.session import create_schema, get_engine

    url = f"sqlite:///{tmp_path / 'planner.db'}"
    engine = get_engine(url)
    create_schema(engine)
    engine.dispose()
    monkeypatch.setenv("MESSAGE_RETENTION_DAYS", "30")

    assert main(["--database-url", url]) == 0
    assert json.loads(capsys.readouterr().out) == {"stale_drafts": 0, "expired_messages": 0}
