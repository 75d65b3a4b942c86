"""``capability_query``: who the bot is and what it can do."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from ..meta import CapabilityQueryMeta
from ..personality import TEMPLATES
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

_ANSWERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"\b(who|what) are you\b", re.IGNORECASE),
        "i'm {bot}, your org's sassy ai assistant. powered by enclave. "
        "i help with announcements, polls, and answering questions about what's going on",
    ),
    (
        re.compile(r"\bare you (a |an )?(bot|ai|robot|machine|computer)\b", re.IGNORECASE),
        "yeah i'm a bot. {bot}, powered by enclave. got a problem with that? 🤖",
    ),
    (
        re.compile(r"\b(how do you work|how does this work|explain yourself)\b", re.IGNORECASE),
        "i read your messages, figure out what you want, and do it. or roast you. "
        "depends on my mood 🤷",
    ),
    (
        re.compile(r"\bwhat('?s| is) enclave\b", re.IGNORECASE),
        "enclave is the platform that powers me. it's like a knowledge base + "
        "communication hub for orgs. pretty cool actually",
    ),
)


def capability_answer(message: str, is_admin: bool, bot_name: str = "jarvis") -> str:
    for pattern, answer in _ANSWERS:
        if pattern.search(message):
            return answer.format(bot=bot_name)
    if re.search(rf"\bwhat('?s| is) {re.escape(bot_name)}\b", message, re.IGNORECASE):
        return (
            f"{bot_name} is me. your org's ai assistant for announcements, polls, "
            "and org questions. i'm kinda a big deal tbh"
        )
    return TEMPLATES.capabilities(is_admin)


def handle_capability_query(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    answer = capability_answer(ctx.message, ctx.is_admin, deps.settings.bot_name)
    return ActionResult("capability_query", answer, meta=CapabilityQueryMeta())
