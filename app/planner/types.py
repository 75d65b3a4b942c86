"""Value types shared by the planner components."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

if TYPE_CHECKING:
    from ..models import Draft, Member, Poll

Action = Literal[
    "draft_write",
    "draft_send",
    "content_query",
    "poll_response",
    "capability_query",
    "knowledge_upload",
    "event_update",
    "chat",
]

ACTIONS: tuple[str, ...] = (
    "draft_write",
    "draft_send",
    "content_query",
    "poll_response",
    "capability_query",
    "knowledge_upload",
    "event_update",
    "chat",
)

ADMIN_ACTIONS = frozenset({"draft_write", "draft_send", "knowledge_upload", "event_update"})

DraftType = Literal["announcement", "poll"]


@dataclass(frozen=True)
class WeightedTurn:
    """One message of recent history with its rank-based relevance weight."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: dt.datetime
    weight: float
    action: str | None = None


@dataclass
class Classification:
    action: str
    confidence: float
    subtype: DraftType | None = None
    reasoning: str = ""


@dataclass
class ClassificationContext:
    """Everything the classifier may look at for one inbound message."""

    message: str
    history: list[WeightedTurn] = field(default_factory=list)
    active_draft: "Draft | None" = None
    has_active_poll: bool = False
    pending_excuse: bool = False
    is_admin: bool = False
    user_name: str | None = None


@dataclass
class ActionResult:
    """Outcome of one handler.

    ``styled`` marks text that is already in the product voice; the
    personality post-processor leaves it untouched.
    """

    action: str
    response: str
    meta: BaseModel | None = None
    styled: bool = False


@dataclass
class PlannerContext:
    """Per-request state handed to every action handler."""

    phone: str
    message: str
    space_id: str | None
    member: "Member | None"
    is_admin: bool
    history: list[WeightedTurn]
    active_draft: "Draft | None"
    active_poll: "Poll | None"
    pending_excuse: bool
    classification: Classification | None = None

    @property
    def user_name(self) -> str | None:
        return self.member.name if self.member is not None else None
