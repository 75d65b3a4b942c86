"""Rank-decayed view of a member's recent conversation."""

from __future__ import annotations

from collections.abc import Sequence

from ..models import Message
from .meta import parse_message_meta
from .types import WeightedTurn

MAX_HISTORY_LENGTH = 5

# Newest first.
HISTORY_WEIGHTS: tuple[float, ...] = (1.0, 0.8, 0.6, 0.4, 0.2)

_CONTENT_PROMPTS = (
    "what do you wanna announce",
    "what do you wanna ask everyone",
    "what would you like to announce",
    "what do you want to ask",
    "what should the poll say",
)

_CONFIRMATION_PROMPTS = (
    'reply "send"',
    'say "send"',
    "looks good?",
)


def build_weighted_history(messages: Sequence[Message]) -> list[WeightedTurn]:
    """Turn the newest messages (oldest first) into weighted turns.

    At most :data:`MAX_HISTORY_LENGTH` messages are kept. The newest gets
    weight 1.0 and each older one 0.2 less, never below 0.2.
    """

    window = list(messages)[-MAX_HISTORY_LENGTH:]
    turns: list[WeightedTurn] = []
    for index, message in enumerate(window):
        rank = len(window) - 1 - index
        weight = HISTORY_WEIGHTS[rank] if rank < len(HISTORY_WEIGHTS) else HISTORY_WEIGHTS[-1]
        inbound = message.direction == "inbound"
        action = None
        if not inbound:
            meta = parse_message_meta(message.meta)
            action = meta.action if meta is not None else None
        turns.append(
            WeightedTurn(
                role="user" if inbound else "assistant",
                content=message.text,
                timestamp=message.created_at,
                weight=weight,
                action=action,
            )
        )
    return turns


def format_history_for_prompt(turns: Sequence[WeightedTurn], *, bot_name: str = "Assistant") -> str:
    lines = []
    for turn in turns:
        label = "User" if turn.role == "user" else bot_name
        lines.append(f"[weight {turn.weight:.1f}] {label}: {turn.content}")
    return "\n".join(lines)


def last_assistant_message(turns: Sequence[WeightedTurn]) -> str | None:
    for turn in reversed(turns):
        if turn.role == "assistant":
            return turn.content
    return None


def is_awaiting_draft_content(turns: Sequence[WeightedTurn]) -> bool:
    """True when the bot's last line asked for the draft's text."""

    last = last_assistant_message(turns)
    if not last:
        return False
    lowered = last.lower()
    return any(prompt in lowered for prompt in _CONTENT_PROMPTS)


def is_awaiting_draft_confirmation(turns: Sequence[WeightedTurn]) -> bool:
    """True when the bot's last line showed a draft preview."""

    last = last_assistant_message(turns)
    if not last:
        return False
    lowered = last.lower()
    return any(prompt in lowered for prompt in _CONFIRMATION_PROMPTS)
