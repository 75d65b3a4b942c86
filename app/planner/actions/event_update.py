"""``event_update``: let admins reschedule or relocate events over SMS.

A change is never applied directly. The handler proposes it, stashes the
proposal as :class:`EventUpdateMeta` on the outbound reply, and waits for a
yes/no. While that proposal is the admin's latest outbound meta the service
routes their next message straight back here.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from typing import TYPE_CHECKING, Any

from ...models import Event
from ...models.planner import as_utc
from ..errors import EventNotFoundError
from ..meta import EventUpdateMeta
from ..types import ActionResult, PlannerContext

if TYPE_CHECKING:
    from ..deps import PlannerDeps

logger = logging.getLogger(__name__)

BLAST_WINDOW = dt.timedelta(hours=2)
MIN_CONFIDENCE = 0.5

_YES = re.compile(r"^(yes|y|confirm)$", re.IGNORECASE)
_NO = re.compile(r"^(no|n|cancel)$", re.IGNORECASE)
_TIME = re.compile(r"\bto (\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)
_FIELDS = {"title": "title", "eventDate": "event_date", "location": "location", "description": "description"}


def is_confirmation_answer(text: str) -> bool:
    answer = text.strip()
    return bool(_YES.match(answer) or _NO.match(answer))


def pending_event_update(deps: "PlannerDeps", phone: str) -> EventUpdateMeta | None:
    """The proposal awaiting ``phone``'s answer, if it is their latest outbound meta."""

    meta = deps.messages.last_outbound_meta(phone)
    if isinstance(meta, EventUpdateMeta) and meta.status == "pending":
        return meta
    return None


def _parse_when(value: Any) -> dt.datetime | None:
    if isinstance(value, dt.datetime):
        return as_utc(value)
    if not isinstance(value, str) or not value:
        return None
    try:
        return as_utc(dt.datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def _describe(event: Event) -> str:
    when = as_utc(event.event_date)
    text = f"{event.title} is now {when:%Y-%m-%d} at {when:%H:%M}"
    if event.location:
        text += f" at {event.location}"
    return text


def _normalize_updates(raw: dict[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for key, value in (raw or {}).items():
        field = _FIELDS.get(key) or (key if key in _FIELDS.values() else None)
        if field is None or value in (None, ""):
            continue
        if field == "event_date":
            parsed = _parse_when(value)
            if parsed is None:
                continue
            value = parsed.isoformat()
        updates[field] = value
    return updates


def _analyze_with_llm(
    ctx: PlannerContext, deps: "PlannerDeps", events: list[Event]
) -> tuple[int | None, dict[str, Any], float, str] | None:
    if deps.llm is None:
        return None
    listing = "\n".join(
        f'{idx}. "{e.title}" on {as_utc(e.event_date).isoformat()}, '
        f"location: {e.location or 'TBD'}, id: {e.id}"
        for idx, e in enumerate(events, start=1)
    )
    data = deps.llm.complete_json(
        "event_update",
        deps.prompts.render(
            "event_update_system", events=listing, today=deps.now().date().isoformat()
        ),
        deps.prompts.render("event_update_user", message=ctx.message),
    )
    if data is None:
        return None
    try:
        event_id = int(data["eventId"]) if data.get("eventId") is not None else None
    except (TypeError, ValueError):
        event_id = None
    return (
        event_id,
        _normalize_updates(data.get("updates") or {}),
        float(data.get("confidence") or 0),
        str(data.get("summary") or "update detected"),
    )


def _analyze_by_title(
    ctx: PlannerContext, events: list[Event]
) -> tuple[int | None, dict[str, Any], float, str]:
    """Title mention plus "to 7pm": moves the event to that time on the same day."""

    lowered = ctx.message.lower()
    event = next((e for e in events if e.title and e.title.lower() in lowered), None)
    if event is None:
        return None, {}, 0.0, ""
    match = _TIME.search(ctx.message)
    if match is None:
        return event.id, {}, 0.6, ""
    hour = int(match.group(1)) % 12 + (12 if match.group(3).lower() == "pm" else 0)
    minute = int(match.group(2) or 0)
    if minute > 59:
        return event.id, {}, 0.6, ""
    moved = as_utc(event.event_date).replace(hour=hour, minute=minute, second=0, microsecond=0)
    summary = f"moving it to {match.group(0)[3:]}"
    return event.id, {"event_date": moved.isoformat()}, 0.7, summary


def propose_update(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    events = deps.events.upcoming(now=deps.now())
    if not events:
        return ActionResult("event_update", "no upcoming events found to update")

    analysis = _analyze_with_llm(ctx, deps, events) or _analyze_by_title(ctx, events)
    event_id, updates, confidence, summary = analysis
    if event_id is None or confidence < MIN_CONFIDENCE:
        return ActionResult(
            "event_update",
            "couldn't figure out which event you want to update. try being more specific?",
        )
    if not updates:
        return ActionResult(
            "event_update",
            "not sure what you want to change about that event. what field are you updating?",
        )
    event = next((e for e in events if e.id == event_id), None)
    if event is None:
        return ActionResult("event_update", "found the event but can't load it right now. try again?")

    meta = EventUpdateMeta(event_id=event.id, updates=updates, description=summary)
    return ActionResult(
        "event_update", f'confirm: {summary} for "{event.title}"? reply yes/no', meta=meta
    )


def apply_update(deps: "PlannerDeps", phone: str, pending: EventUpdateMeta) -> tuple[Event, int]:
    """Apply ``pending`` and blast it when the event is imminent.

    Returns the event and how many members were notified.
    """

    event = deps.events.get(pending.event_id)
    if event is None:
        raise EventNotFoundError(f"Event {pending.event_id} no longer exists")
    changes = dict(pending.updates)
    if "event_date" in changes:
        changes["event_date"] = _parse_when(changes["event_date"])
    deps.events.apply_updates(event, changes)

    if as_utc(event.event_date) > deps.now() + BLAST_WINDOW:
        return event, 0
    text = f"📢 update: {pending.description} - {_describe(event)}"
    recipients = [m.phone for m in deps.members.list_recipients(exclude_phone=phone)]
    report = deps.broadcaster.run(recipients, text)
    deps.messages.log_many(
        report.delivered, "outbound", text, pending.model_copy(update={"status": "applied"})
    )
    return event, report.sent


def confirm_update(
    ctx: PlannerContext, deps: "PlannerDeps", pending: EventUpdateMeta
) -> ActionResult:
    answer = ctx.message.strip().lower()
    if _YES.match(answer):
        try:
            _, notified = apply_update(deps, ctx.phone, pending)
        except EventNotFoundError as exc:
            logger.warning("Event update failed: %s", exc)
            return ActionResult(
                "event_update",
                f"failed to update event: {exc}",
                meta=pending.model_copy(update={"status": "cancelled"}),
            )
        blast = f" sent update to {notified} people." if notified else ""
        return ActionResult(
            "event_update",
            f"✅ event updated: {pending.description}.{blast}",
            meta=pending.model_copy(update={"status": "applied"}),
        )
    if _NO.match(answer):
        return ActionResult(
            "event_update",
            "ok, cancelled the update",
            meta=pending.model_copy(update={"status": "cancelled"}),
        )
    return ActionResult(
        "event_update", "say 'yes' to confirm the update or 'no' to cancel", meta=pending
    )


def handle_event_update(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    pending = pending_event_update(deps, ctx.phone)
    if pending is not None and is_confirmation_answer(ctx.message):
        return confirm_update(ctx, deps, pending)
    # A fresh instruction replaces whatever proposal was still open.
    return propose_update(ctx, deps)
