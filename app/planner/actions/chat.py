"""``chat``: banter, draft cancellation and the confused fallback."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from ...core.phones import mask_phone
from ..classifier import CANCEL_RE
from ..meta import ChatMeta
from ..personality import (
    THANK_YOU_REPLIES,
    TEMPLATES,
    check_for_easter_egg,
    get_quick_response,
    greeting_for,
    pick,
)
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

logger = logging.getLogger(__name__)

_GREETING = re.compile(r"^(hi|hey|hello|yo|sup|what'?s up|wassup|hola|heyo)$", re.IGNORECASE)
_GOODBYE = re.compile(r"^(bye|goodbye|later|peace|cya|see ya|ttyl|gtg)$", re.IGNORECASE)
_THANKS = re.compile(r"\b(thanks|thank you|thx|ty|appreciate)\b", re.IGNORECASE)
_APOLOGY = re.compile(
    r"^(sorry|my bad|mb|oops|apologies)$|\b(i'?m sorry|my apologies)\b", re.IGNORECASE
)

GOODBYES = ("later 👋", "peace ✌️", "bye", "k bye", "ttyl")
FORGIVENESS = ("all good", "you're fine", "it happens", "np", "don't worry about it")
EMPTY_REPLIES = ("you sent nothing", "?", "hello?", "you there?", "that was empty lol")


def _confused(message: str) -> tuple[str, ...]:
    snippet = message if len(message) <= 20 else message[:20] + "..."
    return (
        TEMPLATES.confused(),
        "huh? try again",
        "didn't get that. what do you need?",
        "🤔 you lost me. what's up?",
        f'idk what "{snippet}" means. help?',
    )


def handle_empty_message(deps: "PlannerDeps") -> ActionResult:
    return ActionResult("chat", pick(deps.rng, EMPTY_REPLIES), styled=True)


def handle_chat(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    lowered = ctx.message.strip().lower()

    if CANCEL_RE.match(lowered):
        draft = deps.drafts.get_active(ctx.phone, lock=True)
        if draft is not None:
            deps.drafts.delete(draft)
            logger.info("Draft cancelled by %s", mask_phone(ctx.phone))
            return ActionResult(
                "chat", TEMPLATES.draft_cancelled(), meta=ChatMeta(cancelled_draft=True)
            )

    quick = get_quick_response(ctx.message, deps.rng)
    if quick:
        return ActionResult("chat", quick, meta=ChatMeta(), styled=True)
    egg = check_for_easter_egg(ctx.message, deps.rng)
    if egg:
        return ActionResult("chat", egg, meta=ChatMeta(), styled=True)

    if _GREETING.match(lowered):
        return ActionResult("chat", greeting_for(ctx.user_name, deps.rng), meta=ChatMeta(), styled=True)
    if _GOODBYE.match(lowered):
        return ActionResult("chat", pick(deps.rng, GOODBYES), meta=ChatMeta(), styled=True)
    if _THANKS.search(lowered):
        return ActionResult("chat", pick(deps.rng, THANK_YOU_REPLIES), meta=ChatMeta(), styled=True)
    if _APOLOGY.search(lowered):
        return ActionResult("chat", pick(deps.rng, FORGIVENESS), meta=ChatMeta(), styled=True)

    draft = ctx.active_draft
    if draft is not None and draft.status == "ready":
        return ActionResult(
            "chat",
            f'btw you still have a {draft.draft_type} draft:\n\n"{draft.content}"\n\nwanna send it or nah?',
            meta=ChatMeta(),
        )
    return ActionResult("chat", pick(deps.rng, _confused(ctx.message)), meta=ChatMeta())
