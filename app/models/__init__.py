"""SQLAlchemy declarative base and planner models.

This package hosts the SQLAlchemy models used across the backend. It exposes a
single declarative ``Base`` class that other modules import when creating
tables. Individual models live in dedicated modules within this package.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# Re-export the planner models so callers can write ``from app.models import
# Draft`` instead of touching private modules.
from .planner import (  # noqa: E402
    Draft,
    Event,
    Fact,
    KnowledgeUpload,
    Member,
    Message,
    Poll,
    PollResponse,
)


__all__ = [
    "Base",
    "Draft",
    "Event",
    "Fact",
    "KnowledgeUpload",
    "Member",
    "Message",
    "Poll",
    "PollResponse",
]
