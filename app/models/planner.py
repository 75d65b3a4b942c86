"""Planner SQLAlchemy models.

Every table carries a nullable ``space_id``: the tenant the row belongs to.
``NULL`` selects legacy, space-less mode. Uniqueness that has to hold per
tenant is expressed with ``coalesce(space_id, '')`` so that legacy rows
collide with each other the same way tenant rows do.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, List

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base

EMBEDDING_DIMENSIONS = 384

ACTIVE_DRAFT_STATUSES = ("drafting", "ready")


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    """Attach UTC to naive timestamps read back from SQLite."""

    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class Member(Base):
    """A phone number enrolled in a space.

    Attributes:
        phone: Normalised digits of the member's number.
        space_id: Owning tenant or ``None`` in legacy mode.
        role: ``admin`` or ``member``.
        opted_out: Set by ``STOP``; opted-out members receive no broadcasts.
        needs_name: The onboarding flow is still waiting for a name.
    """

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone: Mapped[str] = mapped_column(String(length=32), nullable=False)
    space_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    name: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(length=16), nullable=False, default="member", server_default=text("'member'")
    )
    opted_out: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    needs_name: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


Index(
    "uq_members_phone_space",
    Member.phone,
    func.coalesce(Member.space_id, ""),
    unique=True,
)


class Message(Base):
    """One inbound or outbound line of an SMS conversation."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_phone_created", "phone", "created_at"),
        Index("ix_messages_space_created", "space_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone: Mapped[str] = mapped_column(String(length=32), nullable=False)
    space_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    direction: Mapped[str] = mapped_column(String(length=16), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class Draft(Base):
    """An admin's in-progress announcement or poll.

    ``version`` is the optimistic-concurrency counter: a flush that finds a
    different version in the row raises ``StaleDataError``.
    """

    __tablename__ = "drafts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_phone: Mapped[str] = mapped_column(String(length=32), nullable=False)
    space_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    draft_type: Mapped[str] = mapped_column(String(length=16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(length=16), nullable=False, default="drafting"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}


Index(
    "uq_drafts_active_owner",
    Draft.owner_phone,
    func.coalesce(Draft.space_id, ""),
    unique=True,
    postgresql_where=Draft.status.in_(ACTIVE_DRAFT_STATUSES),
    sqlite_where=Draft.status.in_(ACTIVE_DRAFT_STATUSES),
)


class Poll(Base):
    """A broadcast poll. At most one per space is active."""

    __tablename__ = "polls"
    __table_args__ = (Index("ix_polls_space_active", "space_id", "is_active"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    space_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(length=32), nullable=False)
    requires_excuse: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    responses: Mapped[List["PollResponse"]] = relationship(
        back_populates="poll",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PollResponse(Base):
    """A member's verdict on a poll, upserted on every reply."""

    __tablename__ = "poll_responses"
    __table_args__ = (UniqueConstraint("poll_id", "phone", name="uq_poll_responses_phone"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    poll_id: Mapped[int] = mapped_column(
        ForeignKey("polls.id", ondelete="CASCADE"), nullable=False
    )
    phone: Mapped[str] = mapped_column(String(length=32), nullable=False)
    verdict: Mapped[str] = mapped_column(String(length=16), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )

    poll: Mapped[Poll] = relationship(back_populates="responses")


class KnowledgeUpload(Base):
    """Raw text an admin texted in for the knowledge base."""

    __tablename__ = "knowledge_uploads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    space_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class Fact(Base):
    """A searchable knowledge-base entry.

    ``date_str`` holds an ISO date or ``recurring:<weekday>``.
    """

    __tablename__ = "facts"
    __table_args__ = (Index("ix_facts_space", "space_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    space_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    upload_id: Mapped[int | None] = mapped_column(
        ForeignKey("knowledge_uploads.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    source_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(length=128), nullable=True)
    subcategory: Mapped[str | None] = mapped_column(String(length=128), nullable=True)
    time_ref: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    date_str: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    entities: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIMENSIONS), nullable=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class Event(Base):
    """A scheduled event admins can reschedule over SMS."""

    __tablename__ = "events"
    __table_args__ = (Index("ix_events_space_date", "space_id", "event_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    space_id: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    title: Mapped[str] = mapped_column(String(length=255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(length=128), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
    )


__all__ = [
    "ACTIVE_DRAFT_STATUSES",
    "EMBEDDING_DIMENSIONS",
    "Draft",
    "Event",
    "Fact",
    "KnowledgeUpload",
    "Member",
    "Message",
    "Poll",
    "PollResponse",
    "as_utc",
]
