"""``poll_response``: record a member's answer to the active poll."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...core.phones import mask_phone
from ...models import Poll
from ..meta import PollResponseMeta
from ..poll_parser import ParsedPollResponse, parse_poll_response
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

logger = logging.getLogger(__name__)


def _recorded(verdict: str, note: str | None) -> str:
    reply = f"got it! recorded: {verdict}"
    if note:
        reply += f' (note: "{note}")'
    return reply


def _save(
    ctx: PlannerContext, deps: "PlannerDeps", poll: Poll, verdict: str, note: str | None
) -> ActionResult:
    deps.polls.upsert_response(poll, ctx.phone, verdict, note)
    awaiting = poll.requires_excuse and verdict == "No" and not note
    logger.info(
        "Poll %s response from %s: %s%s",
        poll.id,
        mask_phone(ctx.phone),
        verdict,
        " (awaiting excuse)" if awaiting else "",
    )
    meta = PollResponseMeta(poll_id=poll.id, verdict=verdict, note=note, awaiting_excuse=awaiting)
    if awaiting:
        reply = "got it, recorded: No. this one's mandatory though, so what's the reason you can't make it?"
    else:
        reply = _recorded(verdict, note)
    return ActionResult("poll_response", reply, meta=meta)


def record_poll_reply(
    ctx: PlannerContext, deps: "PlannerDeps", poll: Poll
) -> ActionResult | None:
    """Record ``ctx.message`` against ``poll``.

    A member who owes an excuse gets their message stored as the note of
    their No, unless it changes the verdict. Returns ``None`` when the
    message is not recognisably an answer.
    """

    parsed: ParsedPollResponse = parse_poll_response(ctx.message)
    if deps.polls.is_pending_excuse(poll, ctx.phone):
        if parsed.verdict in ("Yes", "Maybe"):
            return _save(ctx, deps, poll, parsed.verdict, parsed.note)
        if parsed.verdict == "No" and not parsed.note:
            return _save(ctx, deps, poll, "No", None)
        note = parsed.note if parsed.verdict == "No" else ctx.message.strip()
        return _save(ctx, deps, poll, "No", note)

    if not parsed.is_known:
        return None
    return _save(ctx, deps, poll, parsed.verdict, parsed.note)


def handle_poll_response(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    poll = ctx.active_poll or deps.polls.get_active()
    if poll is None:
        return ActionResult("poll_response", "no active poll right now")

    result = record_poll_reply(ctx, deps, poll)
    if result is None:
        return ActionResult(
            "poll_response",
            f'didn\'t catch that. reply yes, no or maybe to: "{poll.question}"',
            meta=PollResponseMeta(poll_id=poll.id),
        )
    return result
