"""``draft_send``: broadcast a ready draft and finalize it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...core.phones import mask_phone
from ..meta import DraftSendMeta
from ..personality import TEMPLATES
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

logger = logging.getLogger(__name__)

POLL_MESSAGE = '📊 {question}\n\nreply yes/no/maybe (add notes like "yes but running late")'


def broadcast_text(draft_type: str, content: str) -> str:
    if draft_type == "poll":
        return POLL_MESSAGE.format(question=content)
    return content


def handle_draft_send(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    draft = deps.drafts.get_active(ctx.phone, lock=True)
    if draft is None:
        return ActionResult("draft_send", TEMPLATES.no_draft())

    content = (draft.content or "").strip()
    if len(content) < 3:
        return ActionResult("draft_send", TEMPLATES.ask_for_content(draft.draft_type))
    if draft.status != "ready":
        if (draft.payload or {}).get("pending_link"):
            reply = f"still need the link for this {draft.draft_type}. send me the URL first"
        else:
            reply = f'that {draft.draft_type} isn\'t ready yet. finish it up, then say "send"'
        return ActionResult("draft_send", reply)

    text = broadcast_text(draft.draft_type, content)
    recipients = [m.phone for m in deps.members.list_recipients(exclude_phone=ctx.phone)]
    logger.info(
        "Sending %s from %s to %s recipients", draft.draft_type, mask_phone(ctx.phone), len(recipients)
    )
    report = deps.broadcaster.run(recipients, text)
    if recipients and not report.sent:
        # Nothing went out: keep the draft ready so "send" can be retried.
        error = next((o.error for o in report.outcomes if o.error), "unknown error")
        return ActionResult("draft_send", f"failed to send. try again? error: {error}")

    payload = dict(draft.payload or {})
    payload.pop("pending_replacement", None)
    deps.drafts.save(draft, status="sent", payload=payload)

    poll_id = None
    if draft.draft_type == "poll":
        poll = deps.polls.create(
            content, ctx.phone, requires_excuse=bool(payload.get("requires_excuse"))
        )
        poll_id = poll.id

    meta = DraftSendMeta(
        draft_type=draft.draft_type,
        draft_content=content,
        poll_id=poll_id,
        sent=report.sent,
        failed=report.failed,
    )
    deps.messages.log_many(report.delivered, "outbound", text, meta)

    reply = TEMPLATES.draft_sent(report.sent)
    if report.failed:
        reply += f" ({report.failed} failed)"
    return ActionResult("draft_send", reply, meta=meta)
