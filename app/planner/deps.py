"""Collaborators shared by the planner's action handlers."""

from __future__ import annotations

import datetime as dt
import random
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.orm import Session

from ..broadcast import BroadcastRunner
from ..config import PlannerSettings
from ..core.db import resolve_space_id
from ..llm import LLMClient, PromptTemplateStore
from ..search import ContentSearchRouter, Embedder, FactStore
from .personality import DEFAULT_PERSONALITY, PersonalityConfig
from .repositories import (
    DraftRepository,
    EventRepository,
    KnowledgeRepository,
    MemberRepository,
    MessageRepository,
    PollRepository,
)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class PlannerDeps:
    """Everything a handler may touch while serving one message.

    Repositories are bound to the request's session and space.
    """

    session: Session
    space_id: str | None
    settings: PlannerSettings
    prompts: PromptTemplateStore
    search: ContentSearchRouter
    fact_store: FactStore
    broadcaster: BroadcastRunner
    llm: LLMClient | None = None
    embedder: Embedder | None = None
    personality: PersonalityConfig = DEFAULT_PERSONALITY
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], dt.datetime] = _utcnow

    def __post_init__(self) -> None:
        self.space_id = resolve_space_id(self.space_id)
        self.members = MemberRepository(self.session, self.space_id)
        self.messages = MessageRepository(self.session, self.space_id)
        self.drafts = DraftRepository(
            self.session, self.space_id, stale_hours=self.settings.draft_stale_hours
        )
        self.polls = PollRepository(self.session, self.space_id)
        self.events = EventRepository(self.session, self.space_id)
        self.knowledge = KnowledgeRepository(self.session, self.space_id)

    def now(self) -> dt.datetime:
        return self.clock()
