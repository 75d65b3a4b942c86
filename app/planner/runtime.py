"""Process-wide planner wiring.

:func:`build_runtime` assembles the long-lived collaborators once: settings,
the session factory, prompt templates, the model client, the embedder, the
fact store, the search router and the broadcast runner. Each request then asks
the runtime for a :class:`~app.planner.service.PlannerService` bound to a
fresh database session and the request's space.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from ..broadcast import BroadcastRunner
from ..channels.sms import SmsSender, build_sender
from ..config import PlannerSettings, load_settings
from ..llm import LLMClient, PromptTemplateStore
from ..models.session import create_schema, get_sessionmaker
from ..search import (
    ContentSearchRouter,
    Embedder,
    FactStore,
    FastEmbedEmbedder,
    InMemoryFactStore,
    PostgresFactStore,
)
from .deps import PlannerDeps
from .service import PlannerService

logger = logging.getLogger(__name__)


@dataclass
class PlannerRuntime:
    settings: PlannerSettings
    session_factory: sessionmaker[Session]
    prompts: PromptTemplateStore
    search: ContentSearchRouter
    fact_store: FactStore
    broadcaster: BroadcastRunner
    llm: LLMClient | None = None
    embedder: Embedder | None = None

    def deps(self, session: Session, space_id: str | None) -> PlannerDeps:
        return PlannerDeps(
            session=session,
            space_id=space_id,
            settings=self.settings,
            prompts=self.prompts,
            search=self.search,
            fact_store=self.fact_store,
            broadcaster=self.broadcaster,
            llm=self.llm,
            embedder=self.embedder,
        )

    def planner(self, session: Session, space_id: str | None) -> PlannerService:
        return PlannerService(self.deps(session, space_id))


def _is_postgres(url: str | None) -> bool:
    return bool(url) and url.startswith("postgres")


def build_runtime(
    settings: PlannerSettings | None = None,
    *,
    session_factory: sessionmaker[Session] | None = None,
    fact_store: FactStore | None = None,
    embedder: Embedder | None = None,
    sender: SmsSender | None = None,
    llm: LLMClient | None = None,
) -> PlannerRuntime:
    """Build a :class:`PlannerRuntime` from ``settings`` and the environment.

    Every collaborator can be injected, which is how the tests run the whole
    pipeline against SQLite and in-memory fakes.
    """

    settings = settings or load_settings()
    database_url = os.getenv("DATABASE_URL")
    if session_factory is None:
        session_factory = get_sessionmaker(database_url)
        create_schema(session_factory.kw["bind"])

    if fact_store is None:
        fact_store = PostgresFactStore() if _is_postgres(database_url) else InMemoryFactStore()
    if embedder is None and _is_postgres(database_url):
        embedder = FastEmbedEmbedder(settings.embedding_model)
    if llm is None:
        llm = LLMClient.from_env(
            model=settings.openai_model, timeout=settings.llm_timeout_seconds
        )
    if sender is None:
        sender = build_sender(settings.twilio, timeout=settings.llm_timeout_seconds)

    logger.info(
        "Planner runtime ready (llm=%s, embedder=%s, store=%s)",
        "on" if llm is not None else "off",
        type(embedder).__name__ if embedder is not None else "none",
        type(fact_store).__name__,
    )
    return PlannerRuntime(
        settings=settings,
        session_factory=session_factory,
        prompts=PromptTemplateStore.from_file(settings.prompts_file),
        search=ContentSearchRouter(fact_store, embedder, limit=settings.search_limit),
        fact_store=fact_store,
        broadcaster=BroadcastRunner(sender, max_workers=settings.broadcast_max_workers),
        llm=llm,
        embedder=embedder,
    )
