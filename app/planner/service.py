"""Per-message orchestration for the SMS planner.

:meth:`PlannerService.handle` is the only entry point the transport needs.
It runs onboarding and system commands, the poll fast path, the pending
event-confirmation bypass, classification and dispatch, then the
personality pass. The reply, the state change and both message log rows are
committed together. Any unexpected exception rolls the request back and
produces a short apology instead of propagating to the webhook.
"""

from __future__ import annotations

import logging
import re

from ..core.phones import mask_phone, normalize_phone
from ..models import Member
from .actions import handle_empty_message
from .actions.event_update import confirm_update, is_confirmation_answer, pending_event_update
from .actions.poll_response import record_poll_reply
from .classifier import (
    FAST_PATH_THRESHOLD,
    HybridIntentClassifier,
    IntentClassifier,
    LLMIntentClassifier,
    PatternClassifier,
)
from .deps import PlannerDeps
from .dispatcher import dispatch
from .history import MAX_HISTORY_LENGTH, build_weighted_history
from .personality import apply_personality
from .types import (
    ADMIN_ACTIONS,
    ActionResult,
    Classification,
    ClassificationContext,
    PlannerContext,
)

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "oops, something went wrong. try again?"

_NOT_A_NAME = re.compile(
    r"^(yes|no|maybe|\d+|stop|help|start|announce|poll|hi|hello|hey)\b", re.IGNORECASE
)
_NAME_SHAPE = re.compile(r"^[^\W\d_][\w .'-]*$")

ADMIN_COMMANDS = '📢 "announce [message]" - send to all\n📊 "poll [question]" - ask everyone'

_PATTERNS = PatternClassifier()


def looks_like_name(message: str) -> bool:
    text = message.strip()
    return (
        1 < len(text) < 50
        and len(text.split()) <= 4
        and bool(_NAME_SHAPE.match(text))
        and not _NOT_A_NAME.match(text)
    )


def _classification_context(ctx: PlannerContext) -> ClassificationContext:
    return ClassificationContext(
        message=ctx.message,
        history=ctx.history,
        active_draft=ctx.active_draft,
        has_active_poll=ctx.active_poll is not None,
        pending_excuse=ctx.pending_excuse,
        is_admin=ctx.is_admin,
        user_name=ctx.user_name,
    )


def _command_pattern(ctx: PlannerContext) -> Classification | None:
    """A confident pattern intent that outranks the poll and confirmation shortcuts.

    Admin-only intents count only for admins, so a member's "tell everyone
    i'm out" still reaches the poll parser.
    """

    match = _PATTERNS.match(_classification_context(ctx))
    if match is None or match.confidence < FAST_PATH_THRESHOLD:
        return None
    if match.action in ADMIN_ACTIONS and not ctx.is_admin:
        return None
    return match


class PlannerService:
    """Turn one inbound SMS into one reply."""

    def __init__(self, deps: PlannerDeps, classifier: IntentClassifier | None = None) -> None:
        self.deps = deps
        if classifier is None:
            llm_classifier = None
            if deps.llm is not None:
                llm_classifier = LLMIntentClassifier(
                    deps.llm, deps.prompts, bot_name=deps.settings.bot_name
                )
            classifier = HybridIntentClassifier(llm_classifier)
        self.classifier = classifier

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle(self, phone: str, message: str | None) -> ActionResult:
        sender = normalize_phone(phone)
        text = (message or "").strip()
        session = self.deps.session
        try:
            result = self._handle(sender, text)
            self.deps.messages.log(sender, "inbound", text)
            self.deps.messages.log(sender, "outbound", result.response, result.meta)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception("Planner failed for %s", mask_phone(sender))
            return ActionResult("chat", FALLBACK_REPLY, styled=True)
        logger.info(
            "Handled message from %s as %s", mask_phone(sender), result.action
        )
        return result

    def is_admin(self, phone: str, member: Member | None) -> bool:
        if self.deps.space_id is None:
            return self.deps.settings.admins.contains(phone)
        return member is not None and member.is_admin

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _handle(self, phone: str, text: str) -> ActionResult:
        deps = self.deps
        if not text:
            return handle_empty_message(deps)

        member = deps.members.get(phone)
        is_admin = self.is_admin(phone, member)
        onboarding = self._onboard(phone, text, member, is_admin)
        if onboarding is not None:
            return onboarding

        member = deps.members.get(phone)
        active_poll = deps.polls.get_active()
        ctx = PlannerContext(
            phone=phone,
            message=text,
            space_id=deps.space_id,
            member=member,
            is_admin=is_admin,
            history=build_weighted_history(deps.messages.recent(phone, MAX_HISTORY_LENGTH)),
            active_draft=deps.drafts.get_active(phone),
            active_poll=active_poll,
            pending_excuse=deps.polls.is_pending_excuse(active_poll, phone),
        )

        result = self._shortcut(ctx)
        if result is None:
            ctx.classification = self.classifier.classify(_classification_context(ctx))
            logger.info(
                "Classified as %s (%.2f): %s",
                ctx.classification.action,
                ctx.classification.confidence,
                ctx.classification.reasoning,
            )
            result = dispatch(ctx, deps)

        if not result.styled:
            result.response = apply_personality(
                result.response, text, ctx.user_name, deps.personality, deps.rng
            )
            result.styled = True
        return result

    def _onboard(
        self, phone: str, text: str, member: Member | None, is_admin: bool
    ) -> ActionResult | None:
        """New members, name collection and STOP/START."""

        deps = self.deps
        bot = deps.settings.bot_name
        lowered = text.lower()

        if member is None:
            role = "admin" if is_admin else "member"
            if looks_like_name(text):
                deps.members.create(phone, name=text, role=role)
                if is_admin:
                    return ActionResult(
                        "chat", f"hey {text}! 👋 you're set up as an admin.\n\n{ADMIN_COMMANDS}", styled=True
                    )
                return ActionResult(
                    "chat",
                    f"hey {text}! 👋 you're all set. you'll get announcements and polls from the team.",
                    styled=True,
                )
            deps.members.create(phone, role=role, needs_name=True)
            return ActionResult(
                "chat", f"hey! i'm {bot}, powered by enclave. what's your name?", styled=True
            )

        if lowered == "stop":
            deps.members.set_opted_out(member, True)
            return ActionResult("chat", "you've been unsubscribed. text START to rejoin.", styled=True)
        if lowered == "start":
            deps.members.set_opted_out(member, False)
            return ActionResult("chat", "welcome back! you're subscribed.", styled=True)

        if member.needs_name and looks_like_name(text):
            deps.members.set_name(member, text)
            if is_admin:
                return ActionResult(
                    "chat", f"nice to meet you {text}! 👋 you're an admin.\n\n{ADMIN_COMMANDS}", styled=True
                )
            return ActionResult(
                "chat",
                f"nice to meet you {text}! 👋 you'll get announcements and polls from the team.",
                styled=True,
            )
        return None

    def _shortcut(self, ctx: PlannerContext) -> ActionResult | None:
        """Answers that skip the classifier."""

        deps = self.deps
        if ctx.is_admin:
            pending = pending_event_update(deps, ctx.phone)
            if pending is not None:
                if is_confirmation_answer(ctx.message) or _command_pattern(ctx) is None:
                    return confirm_update(ctx, deps, pending)
                logger.info("Pending event update %s superseded by a new command", pending.event_id)

        poll = ctx.active_poll
        if (
            poll is None
            or ctx.active_draft is not None
            or normalize_phone(poll.created_by) == ctx.phone
            or ctx.message.endswith("?")
        ):
            return None
        if not ctx.pending_excuse and deps.polls.get_response(poll, ctx.phone) is not None:
            return None
        if not ctx.pending_excuse and _command_pattern(ctx) is not None:
            return None
        return record_poll_reply(ctx, deps, poll)
