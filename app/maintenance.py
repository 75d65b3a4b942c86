"""Periodic cleanup: stale drafts and expired conversation history.

Run ad hoc or from cron with ``python -m app.maintenance``; the HTTP
counterpart is ``POST /api/sms/maintenance``.
"""

from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import sys
from collections.abc import Iterable
from dataclasses import asdict, dataclass

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from .config import PlannerSettings, load_settings
from .models.session import session_scope
from .planner.repositories import DraftRepository, MessageRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaintenanceReport:
    stale_drafts: int
    expired_messages: int


def run_maintenance(
    session: Session, settings: PlannerSettings, now: dt.datetime | None = None
) -> MaintenanceReport:
    """Delete drafts idle past the stale window and messages past retention.

    Runs across every space and commits on success.
    """

    now = now or dt.datetime.now(dt.timezone.utc)
    drafts = DraftRepository(session, stale_hours=settings.draft_stale_hours)
    stale = drafts.delete_stale()
    cutoff = now - dt.timedelta(days=settings.message_retention_days)
    expired = MessageRepository(session).delete_older_than(cutoff)
    session.commit()
    logger.info("Maintenance removed %s stale drafts and %s old messages", stale, expired)
    return MaintenanceReport(stale_drafts=stale, expired_messages=expired)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Expire stale drafts and old messages (suitable for cron)."
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL; defaults to DATABASE_URL",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    settings = load_settings()
    with session_scope(args.database_url) as session:
        report = run_maintenance(session, settings)
    print(json.dumps(asdict(report)))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
