"""Twilio SMS webhook and operator endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Mapping

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool

from ..channels import get_adapter
from ..core.phones import mask_phone
from ..core.tenant_context import reset_space_context, set_space_context
from ..maintenance import run_maintenance
from ..planner.poll_parser import summarize_poll_responses
from ..planner.runtime import PlannerRuntime, build_runtime
from ..planner.service import FALLBACK_REPLY
from ..rate_limit import SMS_RATE_LIMIT, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sms", tags=["sms"])


@lru_cache(maxsize=1)
def get_runtime() -> PlannerRuntime:
    """Process-wide runtime; tests swap it through ``dependency_overrides``."""

    return build_runtime()


def _resolve_space_id(request: Request) -> str | None:
    candidate = request.query_params.get("space_id") or request.headers.get("x-space-id")
    if candidate is None:
        return None
    return candidate.strip() or None


def _webhook_url(request: Request, runtime: PlannerRuntime) -> str:
    """URL Twilio signed: the configured public URL when behind a proxy."""

    if runtime.settings.app_url:
        url = runtime.settings.app_url.rstrip("/") + request.url.path
        if request.url.query:
            url += "?" + request.url.query
        return url
    return str(request.url)


def _twiml(messages: list[str]) -> Response:
    body, media_type = get_adapter("sms")().build_reply(messages)
    return Response(content=body, media_type=media_type)


def _process(
    runtime: PlannerRuntime, space_id: str | None, sender: str, text: str
) -> str:
    token = set_space_context(space_id, sender)
    try:
        with runtime.session_factory() as session:
            result = runtime.planner(session, space_id).handle(sender, text)
        return result.response
    finally:
        reset_space_context(token)


@router.post("/webhook")
@limiter.limit(SMS_RATE_LIMIT)
async def sms_webhook(
    request: Request, runtime: PlannerRuntime = Depends(get_runtime)
) -> Response:
    """Handle one inbound SMS and answer with TwiML."""

    form = await request.form()
    payload: Mapping[str, Any] = {key: str(value) for key, value in form.items()}
    adapter = get_adapter("sms")()
    config = {"auth_token": runtime.settings.twilio.auth_token}

    if runtime.settings.verify_signature and config["auth_token"]:
        url = _webhook_url(request, runtime)
        if not adapter.verify_signature(url, payload, request.headers, config):
            logger.warning("Rejected SMS webhook with an invalid signature")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    messages = list(adapter.parse_incoming(payload, request.headers, config))
    if not messages:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing sender")
    inbound = messages[0]
    space_id = _resolve_space_id(request)

    try:
        reply = await run_in_threadpool(_process, runtime, space_id, inbound.sender, inbound.text)
    except Exception:
        logger.exception("SMS webhook failed for %s", mask_phone(inbound.sender))
        reply = FALLBACK_REPLY
    return _twiml([reply])


@router.get("/status")
def sms_status(request: Request, runtime: PlannerRuntime = Depends(get_runtime)) -> dict[str, Any]:
    """Member counts and the active poll's tally for operators."""

    space_id = _resolve_space_id(request)
    with runtime.session_factory() as session:
        deps = runtime.deps(session, space_id)
        total, valid = deps.members.counts()
        poll = deps.polls.get_active()
        active_poll = None
        if poll is not None:
            active_poll = {
                "id": poll.id,
                "question": poll.question,
                "created_at": poll.created_at.isoformat() if poll.created_at else None,
                "requires_excuse": poll.requires_excuse,
                "responses": summarize_poll_responses(r.verdict for r in poll.responses),
            }
    return {
        "space_id": space_id,
        "members": total,
        "members_with_valid_phone": valid,
        "active_poll": active_poll,
    }


@router.post("/maintenance")
def sms_maintenance(
    request: Request, runtime: PlannerRuntime = Depends(get_runtime)
) -> dict[str, int]:
    """Purge stale drafts and expired messages; guarded by a shared token."""

    expected = runtime.settings.maintenance_token
    if not expected or request.headers.get("x-maintenance-token") != expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    with runtime.session_factory() as session:
        report = run_maintenance(session, runtime.settings)
    return {"stale_drafts": report.stale_drafts, "expired_messages": report.expired_messages}
