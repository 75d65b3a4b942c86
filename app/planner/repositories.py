"""SQLAlchemy repositories for planner state.

Each repository is bound to one session and one space. All reads filter on
the space (``IS NULL`` in legacy mode) so tenants never see each other's
rows. Repositories only ``flush``; the request owns the transaction and
commits once the reply has been produced.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import ColumnElement, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.db import resolve_space_id
from ..core.phones import is_valid_phone, normalize_phone
from ..models import Draft, Event, KnowledgeUpload, Member, Message, Poll, PollResponse
from ..models.planner import ACTIVE_DRAFT_STATUSES
from .errors import DraftConflictError
from .meta import DraftSendMeta, MessageMeta, dump_message_meta, parse_message_meta

logger = logging.getLogger(__name__)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _space_clause(column: Any, space_id: str | None) -> ColumnElement[bool]:
    if space_id is None:
        return column.is_(None)
    return column == space_id


class _SpaceRepository:
    def __init__(self, session: Session, space_id: str | None = None) -> None:
        self._session = session
        self._space_id = resolve_space_id(space_id)

    @property
    def space_id(self) -> str | None:
        return self._space_id


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


class MemberRepository(_SpaceRepository):
    """Tenant role table lookups and onboarding writes."""

    def get(self, phone: str) -> Member | None:
        return self._session.execute(
            select(Member).where(
                Member.phone == normalize_phone(phone),
                _space_clause(Member.space_id, self._space_id),
            )
        ).scalar_one_or_none()

    def create(
        self,
        phone: str,
        *,
        name: str | None = None,
        role: str = "member",
        needs_name: bool = False,
    ) -> Member:
        member = Member(
            phone=normalize_phone(phone),
            space_id=self._space_id,
            name=name,
            role=role,
            needs_name=needs_name,
        )
        self._session.add(member)
        self._session.flush()
        return member

    def set_name(self, member: Member, name: str) -> None:
        member.name = name
        member.needs_name = False
        self._session.flush()

    def set_opted_out(self, member: Member, opted_out: bool) -> None:
        member.opted_out = opted_out
        self._session.flush()

    def list_recipients(self, exclude_phone: str | None = None) -> list[Member]:
        """Opted-in members with a usable phone number, minus ``exclude_phone``."""

        excluded = normalize_phone(exclude_phone) if exclude_phone else None
        members = self._session.execute(
            select(Member)
            .where(
                _space_clause(Member.space_id, self._space_id),
                Member.opted_out.is_(False),
            )
            .order_by(Member.id)
        ).scalars()
        return [
            m for m in members if m.phone != excluded and is_valid_phone(m.phone)
        ]

    def counts(self) -> tuple[int, int]:
        """Return ``(members, members_with_valid_phone)``."""

        phones = self._session.execute(
            select(Member.phone).where(_space_clause(Member.space_id, self._space_id))
        ).scalars().all()
        return len(phones), sum(1 for p in phones if is_valid_phone(p))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class MessageRepository(_SpaceRepository):
    """Append-only conversation log."""

    def log(
        self,
        phone: str,
        direction: str,
        text: str,
        meta: MessageMeta | None = None,
    ) -> Message:
        message = Message(
            phone=normalize_phone(phone),
            space_id=self._space_id,
            direction=direction,
            text=text,
            meta=dump_message_meta(meta),
        )
        self._session.add(message)
        return message

    def log_many(
        self, phones: Sequence[str], direction: str, text: str, meta: MessageMeta | None
    ) -> int:
        payload = dump_message_meta(meta)
        for phone in phones:
            self._session.add(
                Message(
                    phone=normalize_phone(phone),
                    space_id=self._space_id,
                    direction=direction,
                    text=text,
                    meta=dict(payload) if payload is not None else None,
                )
            )
        return len(phones)

    def recent(self, phone: str, limit: int = 5) -> list[Message]:
        """Return the newest ``limit`` messages for ``phone``, oldest first."""

        rows = self._session.execute(
            select(Message)
            .where(
                Message.phone == normalize_phone(phone),
                _space_clause(Message.space_id, self._space_id),
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        ).scalars().all()
        return list(reversed(rows))

    def last_outbound_meta(self, phone: str) -> MessageMeta | None:
        message = self._session.execute(
            select(Message)
            .where(
                Message.phone == normalize_phone(phone),
                _space_clause(Message.space_id, self._space_id),
                Message.direction == "outbound",
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        if message is None:
            return None
        return parse_message_meta(message.meta)

    def last_sent_by(self, phone: str, scan: int = 20) -> DraftSendMeta | None:
        """The broadcast most recently confirmed to ``phone``."""

        rows = self._session.execute(
            select(Message)
            .where(
                Message.phone == normalize_phone(phone),
                _space_clause(Message.space_id, self._space_id),
                Message.direction == "outbound",
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(scan)
        ).scalars()
        for message in rows:
            meta = parse_message_meta(message.meta)
            if isinstance(meta, DraftSendMeta):
                return meta
        return None

    def recent_broadcasts(self, limit: int = 10, scan: int = 500) -> list[tuple[DraftSendMeta, dt.datetime]]:
        """Distinct past broadcasts in this space, newest first."""

        rows = self._session.execute(
            select(Message)
            .where(
                _space_clause(Message.space_id, self._space_id),
                Message.direction == "outbound",
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(scan)
        ).scalars()
        seen: set[tuple[str, str, int | None]] = set()
        found: list[tuple[DraftSendMeta, dt.datetime]] = []
        for message in rows:
            meta = parse_message_meta(message.meta)
            if not isinstance(meta, DraftSendMeta):
                continue
            key = (meta.draft_type, meta.draft_content, meta.poll_id)
            if key in seen:
                continue
            seen.add(key)
            found.append((meta, message.created_at))
            if len(found) >= limit:
                break
        return found

    def delete_older_than(self, cutoff: dt.datetime) -> int:
        result = self._session.execute(
            delete(Message).where(Message.created_at < cutoff),
            execution_options={"synchronize_session": False},
        )
        return int(result.rowcount or 0)


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------


class DraftRepository(_SpaceRepository):
    """Read-check-write access to the single in-progress draft per owner."""

    def __init__(
        self, session: Session, space_id: str | None = None, *, stale_hours: int = 24
    ) -> None:
        super().__init__(session, space_id)
        self._stale_hours = stale_hours

    def _stale_cutoff(self) -> dt.datetime:
        return _utcnow() - dt.timedelta(hours=self._stale_hours)

    def get_active(self, owner_phone: str, *, lock: bool = False) -> Draft | None:
        """Return the owner's drafting/ready draft unless it has gone stale.

        ``lock`` takes a row lock (``SELECT ... FOR UPDATE``) for the rest of
        the transaction where the backend supports it.
        """

        stmt = (
            select(Draft)
            .where(
                Draft.owner_phone == normalize_phone(owner_phone),
                _space_clause(Draft.space_id, self._space_id),
                Draft.status.in_(ACTIVE_DRAFT_STATUSES),
                Draft.updated_at >= self._stale_cutoff(),
            )
            .order_by(Draft.updated_at.desc())
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update()
        return self._session.execute(stmt).scalar_one_or_none()

    def _purge_stale_for(self, owner_phone: str) -> None:
        # A stale draft still occupies the unique slot; clear it first.
        self._session.execute(
            delete(Draft).where(
                Draft.owner_phone == normalize_phone(owner_phone),
                _space_clause(Draft.space_id, self._space_id),
                Draft.status.in_(ACTIVE_DRAFT_STATUSES),
                Draft.updated_at < self._stale_cutoff(),
            ),
            execution_options={"synchronize_session": False},
        )

    def create(
        self,
        owner_phone: str,
        draft_type: str,
        *,
        content: str = "",
        status: str = "drafting",
        payload: dict[str, Any] | None = None,
    ) -> Draft:
        """Insert a new active draft or raise :class:`DraftConflictError`."""

        self._purge_stale_for(owner_phone)
        draft = Draft(
            owner_phone=normalize_phone(owner_phone),
            space_id=self._space_id,
            draft_type=draft_type,
            content=content,
            status=status,
            payload=dict(payload or {}),
        )
        try:
            with self._session.begin_nested():
                self._session.add(draft)
                self._session.flush()
        except IntegrityError as exc:
            raise DraftConflictError("An active draft already exists for this owner") from exc
        return draft

    def save(self, draft: Draft, **changes: Any) -> Draft:
        """Apply ``changes`` and flush, surfacing lost updates as conflicts."""

        for key, value in changes.items():
            if key == "payload":
                value = dict(value)
            setattr(draft, key, value)
        try:
            with self._session.begin_nested():
                self._session.flush()
        except (IntegrityError, StaleDataError) as exc:
            raise DraftConflictError("The draft was modified concurrently") from exc
        return draft

    def delete(self, draft: Draft) -> None:
        self._session.delete(draft)
        self._session.flush()

    def delete_stale(self) -> int:
        result = self._session.execute(
            delete(Draft).where(
                Draft.status.in_(ACTIVE_DRAFT_STATUSES),
                Draft.updated_at < self._stale_cutoff(),
            ),
            execution_options={"synchronize_session": False},
        )
        return int(result.rowcount or 0)


# ---------------------------------------------------------------------------
# Polls
# ---------------------------------------------------------------------------


class PollRepository(_SpaceRepository):
    """Active-poll singleton and response upserts."""

    def get_active(self) -> Poll | None:
        return self._session.execute(
            select(Poll)
            .where(_space_clause(Poll.space_id, self._space_id), Poll.is_active.is_(True))
            .order_by(Poll.created_at.desc(), Poll.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def create(self, question: str, created_by: str, *, requires_excuse: bool = False) -> Poll:
        """Create the space's active poll, deactivating the previous one."""

        self._session.execute(
            update(Poll)
            .where(_space_clause(Poll.space_id, self._space_id), Poll.is_active.is_(True))
            .values(is_active=False)
        )
        poll = Poll(
            space_id=self._space_id,
            question=question,
            created_by=normalize_phone(created_by),
            requires_excuse=requires_excuse,
            is_active=True,
        )
        self._session.add(poll)
        self._session.flush()
        return poll

    def get_response(self, poll: Poll, phone: str) -> PollResponse | None:
        return self._session.execute(
            select(PollResponse).where(
                PollResponse.poll_id == poll.id,
                PollResponse.phone == normalize_phone(phone),
            )
        ).scalar_one_or_none()

    def upsert_response(
        self, poll: Poll, phone: str, verdict: str, note: str | None
    ) -> PollResponse:
        existing = self.get_response(poll, phone)
        if existing is not None:
            existing.verdict = verdict
            existing.note = note
            self._session.flush()
            return existing
        response = PollResponse(
            poll_id=poll.id, phone=normalize_phone(phone), verdict=verdict, note=note
        )
        try:
            with self._session.begin_nested():
                self._session.add(response)
                self._session.flush()
        except IntegrityError:
            # A concurrent reply inserted first; update that row instead.
            logger.info("Poll response race for poll %s; updating existing row", poll.id)
            existing = self.get_response(poll, phone)
            if existing is None:
                raise
            existing.verdict = verdict
            existing.note = note
            self._session.flush()
            return existing
        return response

    def is_pending_excuse(self, poll: Poll | None, phone: str) -> bool:
        """A No without a note on a poll that requires a reason."""

        if poll is None or not poll.requires_excuse:
            return False
        response = self.get_response(poll, phone)
        return response is not None and response.verdict == "No" and not response.note


# ---------------------------------------------------------------------------
# Events and knowledge uploads
# ---------------------------------------------------------------------------


class EventRepository(_SpaceRepository):
    def upcoming(self, *, now: dt.datetime | None = None, limit: int = 20) -> list[Event]:
        moment = now or _utcnow()
        return list(
            self._session.execute(
                select(Event)
                .where(
                    _space_clause(Event.space_id, self._space_id),
                    Event.event_date >= moment,
                )
                .order_by(Event.event_date)
                .limit(limit)
            ).scalars()
        )

    def get(self, event_id: int) -> Event | None:
        return self._session.execute(
            select(Event).where(
                Event.id == event_id, _space_clause(Event.space_id, self._space_id)
            )
        ).scalar_one_or_none()

    def apply_updates(self, event: Event, updates: dict[str, Any]) -> Event:
        for key, value in updates.items():
            setattr(event, key, value)
        self._session.flush()
        return event


class KnowledgeRepository(_SpaceRepository):
    def create_upload(self, name: str, raw_text: str) -> KnowledgeUpload:
        upload = KnowledgeUpload(space_id=self._space_id, name=name, raw_text=raw_text)
        self._session.add(upload)
        self._session.flush()
        return upload
