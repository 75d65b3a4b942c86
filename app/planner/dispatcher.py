"""Route a classified message to its handler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .actions import (
    handle_capability_query,
    handle_chat,
    handle_content_query,
    handle_draft_send,
    handle_draft_write,
    handle_event_update,
    handle_knowledge_upload,
    handle_poll_response,
)
from .personality import TEMPLATES
from .types import ADMIN_ACTIONS, ActionResult, PlannerContext

if TYPE_CHECKING:
    from .deps import PlannerDeps

logger = logging.getLogger(__name__)


def dispatch(ctx: PlannerContext, deps: "PlannerDeps") -> ActionResult:
    action = ctx.classification.action if ctx.classification is not None else "chat"
    if action in ADMIN_ACTIONS and not ctx.is_admin:
        logger.warning("Refusing admin action %s for a non-admin", action)
        return ActionResult(action, TEMPLATES.not_admin())

    if action == "draft_write":
        return handle_draft_write(ctx, deps)
    elif action == "draft_send":
        return handle_draft_send(ctx, deps)
    elif action == "poll_response":
        return handle_poll_response(ctx, deps)
    elif action == "content_query":
        return handle_content_query(ctx, deps)
    elif action == "capability_query":
        return handle_capability_query(ctx, deps)
    elif action == "knowledge_upload":
        return handle_knowledge_upload(ctx, deps)
    elif action == "event_update":
        return handle_event_update(ctx, deps)
    return handle_chat(ctx, deps)
