"""Intent classification for inbound SMS messages.

Classification runs in three layers:

1. :class:`PatternClassifier` recognises obvious intents ("send", "announce
   ...", "what can you do") without a network call.
2. :class:`LLMIntentClassifier` asks the chat model when no confident
   pattern matched, passing the weighted history and draft/poll state.
3. :class:`HybridIntentClassifier` combines the two and applies the guards
   that must hold whatever the model says: unknown actions become chat,
   non-admins never produce admin actions, and a member who owes a poll
   excuse is steered back to ``poll_response``.

Classification never raises. Any failure degrades to ``chat`` with
confidence 0.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from ..llm import LLMClient, PromptTemplateStore
from .history import (
    format_history_for_prompt,
    is_awaiting_draft_confirmation,
    is_awaiting_draft_content,
)
from .text import URL_RE, looks_like_question
from .types import ACTIONS, ADMIN_ACTIONS, Classification, ClassificationContext

logger = logging.getLogger(__name__)

FAST_PATH_THRESHOLD = 0.8

SEND_RE = re.compile(r"^(send|send it|go|ship|ship it|yes|yep|do it|blast it|fire)$", re.IGNORECASE)
CANCEL_RE = re.compile(
    r"^(cancel|nvm|nevermind|never mind|delete|discard|forget it|scratch that)$",
    re.IGNORECASE,
)

REPLACE_ANSWER_RE = re.compile(
    r"^(yes|y|yep|yeah|sure|ok|okay|replace|replace it|do it|no|n|nope|nah|keep|keep it)$",
    re.IGNORECASE,
)

_ANNOUNCEMENT_PATTERNS: tuple[tuple[re.Pattern[str], float], ...] = (
    (re.compile(r"^announce\s+.+", re.IGNORECASE), 0.95),
    (re.compile(r"\b(make|send|create|start)\s+(an?\s+)?announcement\b", re.IGNORECASE), 0.9),
    (re.compile(r"\b(tell|notify|let)\s+(everyone|people|all|the group|everybody)\b", re.IGNORECASE), 0.85),
    (
        re.compile(
            r"\b(send|send out)\s+(a\s+)?(message|text)\s+(to\s+)?(everyone|all|the group)\b",
            re.IGNORECASE,
        ),
        0.85,
    ),
    (
        re.compile(r"\b(send|send out)\s+(a\s+)?(message|text)\s+(about|for|regarding)\b", re.IGNORECASE),
        0.8,
    ),
)

_POLL_PATTERNS: tuple[tuple[re.Pattern[str], float], ...] = (
    (re.compile(r"^poll\s+.+", re.IGNORECASE), 0.95),
    (re.compile(r"\b(make|send|create|start)\s+(a\s+)?poll\b", re.IGNORECASE), 0.9),
    (
        re.compile(
            r"\b(ask|asking)\s+(everyone|people|all|the group|everybody)\s+(if|whether|about)\b",
            re.IGNORECASE,
        ),
        0.85,
    ),
    (
        re.compile(
            r"\b(who'?s|who is|who can|who will)\s+(coming|going|attend(?:ing)?|free|available)\b",
            re.IGNORECASE,
        ),
        0.8,
    ),
)

_KNOWLEDGE_PATTERN = re.compile(
    r"^(fyi|remember( that)?|save this|add to (the )?(knowledge base|kb))[:,]?\s+.+",
    re.IGNORECASE,
)

_EVENT_UPDATE_PATTERN = re.compile(
    r"^(reschedule|move|push back|postpone)\s+.+\s+to\s+.+", re.IGNORECASE
)

_CAPABILITY_PATTERNS = (
    re.compile(r"\b(what can you do|what do you do|how do you work)\b", re.IGNORECASE),
    re.compile(r"\b(who are you|what are you|are you a bot|are you ai)\b", re.IGNORECASE),
    re.compile(r"\b(help|commands|options)\b", re.IGNORECASE),
    re.compile(r"\bwhat('?s| is) (jarvis|enclave)\b", re.IGNORECASE),
    re.compile(r"\b(your|jarvis'?s?|enclave'?s?) (capabilities|features|functions)\b", re.IGNORECASE),
)

_CONTENT_PATTERNS = (
    re.compile(r"\b(what did|what have) (you|i) (just )?(send|sent|say|said|announce|do|did)\b", re.IGNORECASE),
    re.compile(r"\bwhat (was|is) (that|the) (announcement|message|poll)\b", re.IGNORECASE),
    re.compile(r"\b(when|what time|where) is\b", re.IGNORECASE),
    re.compile(r"\b(what'?s|what is) (happening|going on|the plan)\b", re.IGNORECASE),
    re.compile(r"\b(is there|are there) (a |an )?(meeting|event|active)\b", re.IGNORECASE),
    re.compile(r"\b(tell me about|info on|details about)\b", re.IGNORECASE),
    re.compile(r"\bwhat('?s| is) (tonight|today|tomorrow|this week)\b", re.IGNORECASE),
    re.compile(r"\bwhat are we doing\b", re.IGNORECASE),
    re.compile(r"\bwhen does [a-z0-9 ]+ start\b", re.IGNORECASE),
    re.compile(r"\bwhat time should (i|we) (be there|arrive)\b", re.IGNORECASE),
    re.compile(r"\bwhere should (we|i) (meet|go|be)\b", re.IGNORECASE),
)

_NOT_CONTENT = re.compile(r"^(cancel|nvm|help|stop)", re.IGNORECASE)
_EDIT_WORDS = re.compile(r"\b(change|edit|update|make it|instead|actually)\b", re.IGNORECASE)
_EDIT_CORRECTION = re.compile(r"\bno[,.]?\s+(it should|make it|say)\b", re.IGNORECASE)


class IntentClassifier(Protocol):
    def classify(self, context: ClassificationContext) -> Classification: ...


# ---------------------------------------------------------------------------
# Pattern fast path
# ---------------------------------------------------------------------------


class PatternClassifier:
    """Regex rules for intents that need no model call."""

    def match(self, context: ClassificationContext) -> Classification | None:
        lowered = context.message.strip().lower()
        draft = context.active_draft

        if draft is not None:
            if (draft.payload or {}).get("pending_replacement") and REPLACE_ANSWER_RE.match(lowered):
                return Classification(
                    "draft_write", 0.95, reasoning="Pattern match: replacement confirmation"
                )
            if (draft.payload or {}).get("pending_link") and URL_RE.search(lowered):
                return Classification("draft_write", 0.9, reasoning="Pattern match: link for draft")
            if SEND_RE.match(lowered):
                return Classification("draft_send", 0.95, reasoning="Pattern match: send command")
            if CANCEL_RE.match(lowered):
                return Classification("chat", 0.9, reasoning="Pattern match: cancel draft")

        for pattern, confidence in _ANNOUNCEMENT_PATTERNS:
            if pattern.search(lowered):
                return Classification(
                    "draft_write", confidence, "announcement", "Pattern match: announcement"
                )
        for pattern, confidence in _POLL_PATTERNS:
            if pattern.search(lowered):
                return Classification("draft_write", confidence, "poll", "Pattern match: poll")

        if _KNOWLEDGE_PATTERN.match(lowered):
            return Classification("knowledge_upload", 0.85, reasoning="Pattern match: knowledge")
        if _EVENT_UPDATE_PATTERN.match(lowered):
            return Classification("event_update", 0.85, reasoning="Pattern match: event update")

        if any(p.search(lowered) for p in _CAPABILITY_PATTERNS):
            return Classification("capability_query", 0.85, reasoning="Pattern match: capability")
        if any(p.search(lowered) for p in _CONTENT_PATTERNS):
            return Classification("content_query", 0.8, reasoning="Pattern match: content")

        if draft is not None:
            draft_type = draft.draft_type if draft.draft_type in ("announcement", "poll") else None
            if draft.status == "drafting" and not draft.content and not _NOT_CONTENT.match(lowered):
                return Classification(
                    "draft_write", 0.85, draft_type, "Pattern match: awaiting draft content"
                )
            if draft.status == "ready" and (
                _EDIT_WORDS.search(lowered) or _EDIT_CORRECTION.search(lowered)
            ):
                return Classification("draft_write", 0.8, draft_type, "Pattern match: draft edit")
        return None


# ---------------------------------------------------------------------------
# Language model
# ---------------------------------------------------------------------------


class LLMIntentClassifier:
    """Ask the chat model for a JSON classification."""

    def __init__(
        self,
        llm: LLMClient,
        prompts: PromptTemplateStore | None = None,
        *,
        bot_name: str = "jarvis",
    ) -> None:
        self._llm = llm
        self._prompts = prompts or PromptTemplateStore()
        self._bot_name = bot_name

    def build_prompt(self, context: ClassificationContext) -> str:
        history = ""
        if context.history:
            history = (
                "\nRecent conversation (most recent last, with importance weights):\n"
                + format_history_for_prompt(context.history, bot_name=self._bot_name.capitalize())
            )
        draft = ""
        if context.active_draft is not None:
            d = context.active_draft
            draft = (
                f"\n\nActive draft:\n- Type: {d.draft_type}\n- Status: {d.status}\n"
                f"- Content: \"{d.content or '(empty)'}\""
            )
            if is_awaiting_draft_content(context.history):
                draft += f"\n- {self._bot_name} just asked for the draft text"
            elif is_awaiting_draft_confirmation(context.history):
                draft += f"\n- {self._bot_name} just showed the preview and asked to send"
        poll = ""
        if context.has_active_poll:
            poll = "\n\nThere is an active poll this member can answer."
            if context.pending_excuse:
                poll += " They answered No and still owe a reason."
        return self._prompts.render(
            "classify_user",
            bot_name=self._bot_name,
            user_name=context.user_name or "Unknown",
            is_admin=str(context.is_admin).lower(),
            history=history,
            draft=draft,
            poll=poll,
            message=context.message,
        )

    def classify(self, context: ClassificationContext) -> Classification:
        data = self._llm.complete_json(
            "classify",
            self._prompts.render("classify_system"),
            self.build_prompt(context),
        )
        if data is None:
            raise RuntimeError("LLM classification returned no result")
        subtype = data.get("subtype")
        return Classification(
            action=str(data.get("action") or "chat"),
            confidence=float(data.get("confidence") or 0.5),
            subtype=subtype if subtype in ("announcement", "poll") else None,
            reasoning=str(data.get("reasoning") or "LLM classification"),
        )


# ---------------------------------------------------------------------------
# Hybrid
# ---------------------------------------------------------------------------


class HybridIntentClassifier:
    """Pattern fast path, model fallback, then role and state guards."""

    def __init__(
        self,
        llm_classifier: IntentClassifier | None = None,
        patterns: PatternClassifier | None = None,
    ) -> None:
        self._llm = llm_classifier
        self._patterns = patterns or PatternClassifier()

    def classify(self, context: ClassificationContext) -> Classification:
        try:
            result = self._classify(context)
        except Exception as exc:
            logger.exception("Intent classification failed")
            return Classification("chat", 0.0, reasoning=f"Classification error: {exc}")
        return self._apply_guards(result, context)

    def _classify(self, context: ClassificationContext) -> Classification:
        pattern = self._patterns.match(context)
        if pattern is not None and pattern.confidence >= FAST_PATH_THRESHOLD:
            return pattern

        if self._llm is None:
            if pattern is not None:
                return pattern
            return Classification("chat", 0.0, reasoning="No language model configured")

        llm_result = self._llm.classify(context)
        if pattern is not None and pattern.confidence > llm_result.confidence:
            pattern.reasoning = f"{pattern.reasoning} (LLM less confident)"
            return pattern
        return llm_result

    def _apply_guards(
        self, result: Classification, context: ClassificationContext
    ) -> Classification:
        if result.action not in ACTIONS:
            logger.warning("Unknown action %r from classifier; using chat", result.action)
            result = Classification("chat", result.confidence, None, f"Unknown action {result.action}")
        result.confidence = min(max(result.confidence, 0.0), 1.0)

        if result.action in ADMIN_ACTIONS and not context.is_admin:
            action = "content_query" if looks_like_question(context.message) else "chat"
            result = Classification(
                action, result.confidence, None, f"Non-admin reclassified from {result.action}"
            )

        if context.pending_excuse and result.action != "poll_response":
            lowered = context.message.strip().lower()
            explicit_draft_command = context.active_draft is not None and (
                SEND_RE.match(lowered) or CANCEL_RE.match(lowered)
            )
            if not explicit_draft_command:
                result = Classification(
                    "poll_response",
                    max(result.confidence, 0.9),
                    None,
                    "Pending poll excuse",
                )
        return result
