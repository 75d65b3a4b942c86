"""``draft_write``: create, fill in and edit an admin's broadcast draft.

An owner has at most one draft in ``drafting`` or ``ready``. Every path in
this module reads it under a row lock and writes it back through
:class:`~app.planner.repositories.DraftRepository`, which turns a lost
update into :class:`DraftConflictError`. The handler retries such a
conflict once against the freshly committed state.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...core.phones import mask_phone
from ...models import Draft
from ..errors import DraftConflictError
from ..meta import DraftWriteMeta
from ..personality import TEMPLATES
from ..text import (
    extract_content,
    extract_edit,
    find_urls,
    format_content,
    is_just_command,
)
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 5
CONTENT_HISTORY_SIZE = 6

_MANDATORY_RE = re.compile(
    r"\b(mandatory|required|must attend|attendance is required|everyone needs to be there)\b",
    re.IGNORECASE,
)
_NEW_COMMAND_RE = re.compile(
    r"^((announce|poll)\s+\S|(make|send|create|start)\s+(an?\s+)?(announcement|poll)\s+\S)",
    re.IGNORECASE,
)
_CONFIRM_RE = re.compile(r"^(yes|y|yep|yeah|sure|ok|okay|replace|replace it|do it)$", re.IGNORECASE)
_DECLINE_RE = re.compile(r"^(no|n|nope|nah|keep|keep it)$", re.IGNORECASE)


@dataclass
class LinkCheck:
    links: list[str] = field(default_factory=list)
    needs_link: bool = False

    @property
    def has_links(self) -> bool:
        return bool(self.links)


# ---------------------------------------------------------------------------
# Model-assisted helpers (each has a deterministic fallback)
# ---------------------------------------------------------------------------


def detect_links(text: str, deps: "PlannerDeps") -> LinkCheck:
    """URLs present in ``text`` and whether it reads like it needs one."""

    links = find_urls(text)
    needs_link = False
    if deps.llm is not None:
        data = deps.llm.complete_json(
            "link_detection",
            deps.prompts.render("link_detection_system"),
            deps.prompts.render("link_detection_user", message=text),
        )
        if data is not None:
            for link in data.get("links") or []:
                # Only keep links that actually occur in the text.
                if isinstance(link, str) and link in text and link not in links:
                    links.append(link)
            needs_link = bool(data.get("needsLink"))
    return LinkCheck(links=links, needs_link=needs_link and not links)


def detect_mandatory(text: str, deps: "PlannerDeps") -> bool:
    if deps.llm is not None:
        data = deps.llm.complete_json(
            "mandatory_poll",
            deps.prompts.render("mandatory_poll_system"),
            deps.prompts.render("mandatory_poll_user", message=text),
        )
        if data is not None and "isMandatory" in data:
            return bool(data["isMandatory"])
    return bool(_MANDATORY_RE.search(text))


def resolve_draft_content(
    ctx: PlannerContext,
    deps: "PlannerDeps",
    draft_type: str,
    previous: str | None = None,
) -> str:
    """The text to broadcast, derived from the message and recent turns.

    With ``previous`` the message is read as an edit of that draft.
    """

    if previous:
        fallback = extract_edit(ctx.message, draft_type)
    else:
        fallback = extract_content(ctx.message, draft_type)
    if deps.llm is None:
        return fallback

    recent = deps.messages.recent(ctx.phone, CONTENT_HISTORY_SIZE)
    history = "\n".join(
        f"{'User' if m.direction == 'inbound' else 'Bot'}: {m.text}" for m in recent
    )
    previous_line = f'\nPrevious draft: "{previous}"' if previous else ""
    text = deps.llm.complete_text(
        "draft_content",
        deps.prompts.render("draft_content_system", draft_type=draft_type),
        deps.prompts.render(
            "draft_content_user",
            history=history or "(no earlier messages)",
            message=ctx.message,
            previous=previous_line,
        ),
    )
    if not text:
        return fallback
    return format_content(text, draft_type)


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------


def _excuse_note(payload: dict[str, Any]) -> str:
    if payload.get("requires_excuse"):
        return ' (mandatory - excuses required for "no")'
    return ""


def _result(draft: Draft, response: str) -> ActionResult:
    meta = DraftWriteMeta(
        draft_type=draft.draft_type, draft_content=draft.content or "", status=draft.status
    )
    return ActionResult("draft_write", response, meta=meta)


def _filled_reply(draft: Draft, *, new: bool) -> str:
    payload = draft.payload or {}
    if payload.get("pending_link"):
        if new:
            return (
                "got it, but this looks like it needs a link (RSVP, form, etc.). "
                f"send me the link and i'll add it to the {draft.draft_type}"
            )
        return "got it, but this looks like it needs a link. send me the link and i'll add it"
    return TEMPLATES.draft_created(draft.draft_type, draft.content) + _excuse_note(payload)


def _content_state(
    ctx: PlannerContext,
    deps: "PlannerDeps",
    content: str,
    draft_type: str,
) -> tuple[str, dict[str, Any]]:
    """Status and payload for a draft that just received ``content``."""

    check = detect_links(content, deps)
    payload: dict[str, Any] = {"links": check.links, "requires_excuse": False}
    if draft_type == "poll":
        payload["requires_excuse"] = detect_mandatory(f"{ctx.message}\n{content}", deps)
    if check.needs_link:
        payload["pending_link"] = True
        return "drafting", payload
    return "ready", payload


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _start_draft(ctx: PlannerContext, deps: "PlannerDeps", draft_type: str) -> ActionResult:
    content = ""
    if not is_just_command(ctx.message, draft_type):
        content = resolve_draft_content(ctx, deps, draft_type)
    if len(content) < MIN_CONTENT_LENGTH:
        draft = deps.drafts.create(ctx.phone, draft_type, content="", status="drafting")
        return _result(draft, TEMPLATES.ask_for_content(draft_type))

    status, payload = _content_state(ctx, deps, content, draft_type)
    draft = deps.drafts.create(
        ctx.phone, draft_type, content=content, status=status, payload=payload
    )
    logger.info("Draft %s created for %s (%s)", draft.id, mask_phone(ctx.phone), status)
    return _result(draft, _filled_reply(draft, new=True))


def _fill_draft(
    ctx: PlannerContext, deps: "PlannerDeps", draft: Draft, draft_type: str
) -> ActionResult:
    content = ""
    if not is_just_command(ctx.message, draft_type):
        content = resolve_draft_content(ctx, deps, draft_type)
    if len(content) < MIN_CONTENT_LENGTH:
        if draft_type != draft.draft_type:
            deps.drafts.save(draft, draft_type=draft_type)
        return _result(draft, TEMPLATES.ask_for_content(draft_type))

    status, payload = _content_state(ctx, deps, content, draft_type)
    deps.drafts.save(draft, draft_type=draft_type, content=content, status=status, payload=payload)
    return _result(draft, _filled_reply(draft, new=False))


def _attach_link(ctx: PlannerContext, deps: "PlannerDeps", draft: Draft) -> ActionResult:
    links = detect_links(ctx.message, deps).links
    if not links:
        return _result(draft, f"didn't catch a link there. send me the URL for this {draft.draft_type}")

    payload = dict(draft.payload or {})
    payload.pop("pending_link", None)
    payload["links"] = list(payload.get("links") or []) + links
    content = f"{draft.content}\n\n" + "\n".join(links)
    deps.drafts.save(draft, content=content, status="ready", payload=payload)
    reply = (
        f'perfect! here\'s the {draft.draft_type} with the link:\n\n"{content}"\n\n'
        'say "send" when ready'
    )
    return _result(draft, reply + _excuse_note(payload))


def _edit_draft(ctx: PlannerContext, deps: "PlannerDeps", draft: Draft) -> ActionResult:
    content = resolve_draft_content(ctx, deps, draft.draft_type, previous=draft.content)
    if not content:
        return _result(draft, TEMPLATES.confused())
    payload = dict(draft.payload or {})
    payload["links"] = find_urls(content)
    deps.drafts.save(draft, content=content, status="ready", payload=payload)
    return _result(draft, TEMPLATES.draft_updated(content))


def _propose_replacement(
    ctx: PlannerContext, deps: "PlannerDeps", draft: Draft, new_type: str
) -> ActionResult | None:
    candidate = resolve_draft_content(ctx, deps, new_type)
    if len(candidate) < MIN_CONTENT_LENGTH:
        return None
    if candidate.lower() == (draft.content or "").lower() and new_type == draft.draft_type:
        return None
    payload = dict(draft.payload or {})
    payload["pending_replacement"] = {"type": new_type, "content": candidate}
    deps.drafts.save(draft, payload=payload)
    reply = (
        f'you already have a {draft.draft_type} going:\n\n"{draft.content}"\n\n'
        f'replace it with this {new_type}?\n\n"{candidate}"\n\nreply yes or no'
    )
    return _result(draft, reply)


def _resolve_replacement(ctx: PlannerContext, deps: "PlannerDeps", draft: Draft) -> ActionResult:
    payload = dict(draft.payload or {})
    pending = payload.get("pending_replacement") or {}
    answer = ctx.message.strip().lower()

    if _CONFIRM_RE.match(answer):
        new_type = pending.get("type") or draft.draft_type
        content = pending.get("content") or ""
        status, new_payload = _content_state(ctx, deps, content, new_type)
        deps.drafts.save(
            draft, draft_type=new_type, content=content, status=status, payload=new_payload
        )
        return _result(draft, _filled_reply(draft, new=True))

    if _DECLINE_RE.match(answer):
        payload.pop("pending_replacement", None)
        deps.drafts.save(draft, payload=payload)
        return _result(
            draft,
            f'ok, keeping the current {draft.draft_type}:\n\n"{draft.content}"\n\nsay "send" when ready',
        )

    return _result(
        draft,
        f'replace your current {draft.draft_type} with "{pending.get("content", "")}"? reply yes or no',
    )


def _write(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    subtype = ctx.classification.subtype if ctx.classification is not None else None
    draft = deps.drafts.get_active(ctx.phone, lock=True)
    if draft is None:
        return _start_draft(ctx, deps, subtype or "announcement")

    payload = draft.payload or {}
    if payload.get("pending_replacement"):
        return _resolve_replacement(ctx, deps, draft)
    if payload.get("pending_link"):
        return _attach_link(ctx, deps, draft)
    if not draft.content:
        return _fill_draft(ctx, deps, draft, subtype or draft.draft_type)
    if is_just_command(ctx.message, subtype or draft.draft_type):
        return _result(
            draft,
            f'you already have a {draft.draft_type} going:\n\n"{draft.content}"\n\n'
            'say "send", tell me what to change, or "cancel" to start over',
        )
    if _NEW_COMMAND_RE.match(ctx.message.strip()):
        proposed = _propose_replacement(ctx, deps, draft, subtype or draft.draft_type)
        if proposed is not None:
            return proposed
    return _edit_draft(ctx, deps, draft)


def handle_draft_write(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    try:
        return _write(ctx, deps)
    except DraftConflictError:
        logger.warning("Draft conflict for %s; retrying once", mask_phone(ctx.phone))
        deps.session.expire_all()
    try:
        return _write(ctx, deps)
    except DraftConflictError:
        logger.warning("Draft conflict for %s persisted after retry", mask_phone(ctx.phone))
        return ActionResult(
            "draft_write", "that draft just changed under me. check it and try again?"
        )
