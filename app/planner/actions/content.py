"""``content_query``: answer questions from facts and past broadcasts."""

from __future__ import annotations

import datetime as dt
import logging
import os
import re
from typing import TYPE_CHECKING

from langdetect import detect

from ...search import ContentResult
from ...search.router import FALLBACK_KEYWORDS
from ..meta import ContentQueryMeta
from ..personality import TEMPLATES
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
PAST_SOURCES = ("announcement", "poll")

_ASKING_ABOUT_SENT = re.compile(
    r"\b(what did|what have) (you|i) (just )?(send|sent|say|said|announce|do|did)\b", re.IGNORECASE
)
_ASKING_ABOUT_ANNOUNCEMENT = re.compile(
    r"\bwhat (was|is) (that|the) (announcement|message|poll)\b", re.IGNORECASE
)
_SPECIFIC_QUESTION = re.compile(r"\b(what|when|where|who|how)\b", re.IGNORECASE)


def get_next_occurrence(date_str: str | None, today: dt.date) -> dt.date | None:
    """Next date strictly after ``today`` for a ``recurring:<weekday>`` value."""

    if not date_str or not date_str.startswith("recurring:"):
        return None
    day = date_str.split(":", 1)[1].strip().lower()
    if day not in WEEKDAYS:
        return None
    days_until = WEEKDAYS.index(day) - today.weekday()
    if days_until <= 0:
        days_until += 7
    return today + dt.timedelta(days=days_until)


def _parse_date(value: str) -> dt.date | None:
    try:
        return dt.date.fromisoformat(value[:10])
    except ValueError:
        return None


def result_priority(result: ContentResult, today: dt.date) -> int:
    """Upcoming dated facts, then recurring facts, other facts, past broadcasts."""

    if result.source in PAST_SOURCES:
        return 1
    if result.date_str and result.date_str.startswith("recurring:"):
        return 3
    if result.date_str:
        when = _parse_date(result.date_str)
        if when is not None and when >= today:
            return 4
    return 2


def check_recent_actions(ctx: PlannerContext, deps: "PlannerDeps") -> str | None:
    """Answer "what did you just send" from the last broadcast meta."""

    if not (
        _ASKING_ABOUT_SENT.search(ctx.message) or _ASKING_ABOUT_ANNOUNCEMENT.search(ctx.message)
    ):
        return None
    sent = deps.messages.last_sent_by(ctx.phone, scan=5)
    if sent is None:
        return None
    if sent.draft_content:
        return f'i just sent out: "{sent.draft_content}"'
    return "i just sent out an announcement. check your messages"


def past_action_results(ctx: PlannerContext, deps: "PlannerDeps") -> list[ContentResult]:
    broadcasts = deps.messages.recent_broadcasts(limit=10)
    if _SPECIFIC_QUESTION.search(ctx.message):
        words = [
            w
            for w in ctx.message.lower().split()
            if len(w) > 2 and w not in FALLBACK_KEYWORDS
        ]
        if words:
            broadcasts = [
                (meta, sent_at)
                for meta, sent_at in broadcasts
                if any(w in meta.draft_content.lower() for w in words)
            ]
    results = []
    for meta, sent_at in broadcasts:
        is_poll = meta.draft_type == "poll"
        body = f"{'📊' if is_poll else '📢'} {meta.draft_content}"
        if is_poll:
            body += "\n(Reply yes/no/maybe)"
        body += f"\n(Sent: {sent_at:%Y-%m-%d})"
        results.append(
            ContentResult(
                title="Poll" if is_poll else "Announcement",
                body=body,
                score=0.5,
                date_str=None,
                source="poll" if is_poll else "announcement",
            )
        )
    return results


def format_results_for_prompt(results: list[ContentResult], today: dt.date) -> str:
    blocks = []
    for idx, result in enumerate(results, start=1):
        icon = {"announcement": "📢", "poll": "📊"}.get(result.source, "📋")
        lines = [f"[{idx}] {icon} {result.title or 'Info'}", result.body]
        if result.source in PAST_SOURCES:
            lines.append(f"Type: {result.source.upper()}")
        elif result.date_str and result.date_str.startswith("recurring:"):
            lines.append("Type: RECURRING")
            nxt = get_next_occurrence(result.date_str, today)
            if nxt is not None:
                lines.append(f"Next occurrence: {nxt:%A} {nxt.isoformat()}")
        elif result.date_str:
            lines.append(f"Type: EVENT ({result.date_str})")
        else:
            lines.append("Type: FACT")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _language_instruction(question: str) -> str:
    lang = os.getenv("OPENAI_LANG")
    if not lang:
        try:
            lang = detect(question)
        except Exception:  # detection is optional
            lang = None
    return f"Reply in {lang}." if lang else "Reply in the same language as the question."


def compose_answer(
    question: str, results: list[ContentResult], deps: "PlannerDeps", today: dt.date
) -> str:
    if not results:
        return TEMPLATES.no_results()
    fallback = results[0].body
    if deps.llm is None:
        return fallback
    system = deps.prompts.render(
        "content_answer_system",
        today_name=today.strftime("%A"),
        today=today.isoformat(),
        language=_language_instruction(question),
    )
    user = deps.prompts.render(
        "content_answer_user",
        question=question,
        count=len(results),
        results=format_results_for_prompt(results, today),
    )
    return deps.llm.complete_text("content_answer", system, user) or fallback


def handle_content_query(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    recent = check_recent_actions(ctx, deps)
    if recent is not None:
        return ActionResult("content_query", recent, meta=ContentQueryMeta(result_count=1))

    results: list[ContentResult] = []
    try:
        results.extend(deps.search.search(ctx.message, space_id=deps.space_id))
    except Exception:
        logger.exception("Content search failed; continuing with past broadcasts")
    results.extend(past_action_results(ctx, deps))

    today = deps.now().date()
    results.sort(key=lambda r: (result_priority(r, today), r.score), reverse=True)
    logger.info("Content query matched %s results", len(results))

    answer = compose_answer(ctx.message, results, deps, today)
    return ActionResult("content_query", answer, meta=ContentQueryMeta(result_count=len(results)))
