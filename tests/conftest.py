import datetime as dt
import pathlib
import random
import sys
from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi import FastAPI, Request
from sqlalchemy import event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from app.app_logging import init_logging
from app.broadcast import BroadcastRunner
from app.channels.base import SendResult
from app.config import AdminAllowlist, PlannerSettings
from app.llm import PromptTemplateStore
from app.models.session import create_schema, get_engine, get_sessionmaker
from app.planner.deps import PlannerDeps
from app.planner.service import PlannerService
from app.search import ContentSearchRouter, InMemoryFactStore

ADMIN_PHONE = "5550000001"
MEMBER_PHONES = ("5550000002", "5550000003")


@dataclass
class FakeSender:
    """Records every send; numbers in ``failing`` get an error result."""

    failing: set[str] = field(default_factory=set)
    sent: list[tuple[str, str]] = field(default_factory=list)

    def send(self, recipient: str, text: str) -> SendResult:
        if recipient in self.failing:
            return SendResult(ok=False, error="carrier rejected")
        self.sent.append((recipient, text))
        return SendResult(ok=True, external_id=f"SM{len(self.sent)}")


@dataclass
class FakeLLM:
    """Stand-in for :class:`app.llm.LLMClient` answering per task name."""

    json_replies: dict[str, Any] = field(default_factory=dict)
    text_replies: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, str, str]] = field(default_factory=list)

    def complete_json(self, task: str, system: str, user: str, **_: Any) -> dict | None:
        self.calls.append((task, system, user))
        return self.json_replies.get(task)

    def complete_text(self, task: str, system: str, user: str, **_: Any) -> str | None:
        self.calls.append((task, system, user))
        return self.text_replies.get(task)


class KeywordEmbedder:
    """Two-dimensional toy embedding: meetings on one axis, everything else on the other."""

    def embed(self, texts):
        return [[1.0, 0.0] if "meeting" in t.lower() else [0.0, 1.0] for t in texts]


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app


@pytest.fixture
def engine():
    engine = get_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite needs explicit BEGIN for SAVEPOINTs to nest correctly.
    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, _record):  # pragma: no cover - SQLite test helper
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):  # pragma: no cover - SQLite test helper
        conn.exec_driver_sql("BEGIN")

    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return get_sessionmaker(engine=engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> PlannerSettings:
    return PlannerSettings(
        admins=AdminAllowlist.from_numbers([ADMIN_PHONE]),
        verify_signature=False,
    )


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def fact_store() -> InMemoryFactStore:
    return InMemoryFactStore()


@pytest.fixture
def make_deps(session, settings, sender, fact_store):
    def _make(
        *,
        space_id: str | None = None,
        llm: Any = None,
        embedder: Any = None,
        clock=None,
        seed: int = 7,
    ) -> PlannerDeps:
        kwargs: dict[str, Any] = {}
        if clock is not None:
            kwargs["clock"] = clock
        return PlannerDeps(
            session=session,
            space_id=space_id,
            settings=settings,
            prompts=PromptTemplateStore(),
            search=ContentSearchRouter(fact_store, embedder),
            fact_store=fact_store,
            broadcaster=BroadcastRunner(sender, max_workers=4),
            llm=llm,
            embedder=embedder,
            rng=random.Random(seed),
            **kwargs,
        )

    return _make


@pytest.fixture
def deps(make_deps) -> PlannerDeps:
    return make_deps()


@pytest.fixture
def planner(deps) -> PlannerService:
    return PlannerService(deps)


@pytest.fixture
def seeded(deps, session):
    """An admin plus two members, all named, in legacy mode."""

    deps.members.create(ADMIN_PHONE, name="Ava", role="admin")
    for phone, name in zip(MEMBER_PHONES, ("Ben", "Cy")):
        deps.members.create(phone, name=name)
    session.commit()
    return deps


def fixed_clock(moment: dt.datetime):
    return lambda: moment
