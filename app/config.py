"""Runtime configuration for the SMS planner.

Settings are read from the environment (``.env`` files are honoured through
``python-dotenv``) into small frozen dataclasses so that collaborators receive
explicit configuration objects instead of reaching for ``os.environ``
themselves. Tests build these dataclasses directly.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .core.phones import last_ten_digits, normalize_phone

load_dotenv()

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AdminAllowlist:
    """Global admin phone allowlist used only in legacy, space-less mode.

    Numbers are compared on their last ten digits so ``+1 (555) 010-0000`` and
    ``5550100000`` refer to the same person.
    """

    phones: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_numbers(cls, numbers: Iterable[str]) -> "AdminAllowlist":
        cleaned = {last_ten_digits(n) for n in numbers if normalize_phone(n)}
        return cls(phones=frozenset(p for p in cleaned if p))

    @classmethod
    def from_env(cls) -> "AdminAllowlist":
        raw = os.getenv("ADMIN_PHONE_NUMBERS", "")
        return cls.from_numbers(part.strip() for part in raw.split(","))

    def contains(self, phone: str) -> bool:
        key = last_ten_digits(phone)
        return bool(key) and key in self.phones


@dataclass(frozen=True)
class TwilioCredentials:
    """Credentials for the Twilio REST API and webhook signature checks."""

    account_sid: str | None = None
    auth_token: str | None = None
    from_number: str | None = None

    @property
    def can_send(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @classmethod
    def from_env(cls) -> "TwilioCredentials":
        return cls(
            account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
            auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
            from_number=os.getenv("TWILIO_FROM_NUMBER"),
        )


@dataclass(frozen=True)
class PlannerSettings:
    """Tunables for classification, drafting, search and broadcasting."""

    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 10.0
    draft_stale_hours: int = 24
    message_retention_days: int = 30
    broadcast_max_workers: int = 8
    search_limit: int = 5
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    bot_name: str = "jarvis"
    prompts_file: str | None = None
    verify_signature: bool = True
    app_url: str | None = None
    maintenance_token: str | None = None
    admins: AdminAllowlist = field(default_factory=AdminAllowlist)
    twilio: TwilioCredentials = field(default_factory=TwilioCredentials)


def load_settings() -> PlannerSettings:
    """Build :class:`PlannerSettings` from environment variables."""

    return PlannerSettings(
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "10")),
        draft_stale_hours=int(os.getenv("DRAFT_STALE_HOURS", "24")),
        message_retention_days=int(os.getenv("MESSAGE_RETENTION_DAYS", "30")),
        broadcast_max_workers=int(os.getenv("BROADCAST_MAX_WORKERS", "8")),
        search_limit=int(os.getenv("SEARCH_LIMIT", "5")),
        embedding_model=os.getenv("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
        bot_name=os.getenv("BOT_NAME", "jarvis"),
        prompts_file=os.getenv("PLANNER_PROMPTS_FILE") or None,
        verify_signature=_env_bool("SMS_VERIFY_SIGNATURE", True),
        app_url=os.getenv("APP_URL") or None,
        maintenance_token=os.getenv("MAINTENANCE_TOKEN") or None,
        admins=AdminAllowlist.from_env(),
        twilio=TwilioCredentials.from_env(),
    )
