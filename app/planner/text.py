"""Small text helpers shared by the classifier and the draft handlers."""

from __future__ import annotations

import re

URL_RE = re.compile(r"https?://[^\s<>\"']+|www\.[^\s<>\"']+", re.IGNORECASE)

_QUESTION_START = re.compile(
    r"^(what|when|where|who|why|how|is|are|can|do|does|will|should)\b", re.IGNORECASE
)

_ANNOUNCEMENT_PREFIXES = (
    re.compile(r"^announce(ment)?\s*", re.IGNORECASE),
    re.compile(r"^(send|make|create)\s+(an?\s+)?announcement\s*", re.IGNORECASE),
    re.compile(
        r"^(tell|notify|let)\s+(everyone|people|all|the group|everybody)\s*(about|that|to)?\s*",
        re.IGNORECASE,
    ),
)

_POLL_PREFIXES = (
    re.compile(r"^poll\s*", re.IGNORECASE),
    re.compile(r"^(send|make|create|start)\s+(a\s+)?poll\s*", re.IGNORECASE),
    re.compile(
        r"^(ask|asking)\s+(everyone|people|all|the group|everybody)\s*(if|whether|about)?\s*",
        re.IGNORECASE,
    ),
)

_BARE_ANNOUNCEMENT = re.compile(
    r"^(announce|announcement|make an announcement|send an announcement|create an announcement)$",
    re.IGNORECASE,
)
_BARE_POLL = re.compile(
    r"^(poll|make a poll|send a poll|create a poll|start a poll)$", re.IGNORECASE
)


def looks_like_question(message: str) -> bool:
    lowered = message.strip().lower()
    return lowered.endswith("?") or bool(_QUESTION_START.match(lowered))


def format_content(content: str, draft_type: str) -> str:
    """Trim quotes and whitespace; polls always end with a question mark."""

    text = content.strip().strip('"').strip()
    if draft_type == "poll" and text and not text.endswith("?"):
        text += "?"
    return text


def extract_content(message: str, draft_type: str) -> str:
    """Strip command prefixes ("announce", "make a poll" ...) from ``message``."""

    content = message.strip()
    prefixes = _POLL_PREFIXES if draft_type == "poll" else _ANNOUNCEMENT_PREFIXES
    for pattern in prefixes:
        content = pattern.sub("", content)
    content = content.strip()
    if draft_type == "poll" and content and not content.endswith("?"):
        content += "?"
    return content


def is_just_command(message: str, draft_type: str) -> bool:
    """True for a bare "announce" / "make a poll" without any content."""

    lowered = message.strip().lower()
    pattern = _BARE_POLL if draft_type == "poll" else _BARE_ANNOUNCEMENT
    return bool(pattern.match(lowered))


def find_urls(text: str) -> list[str]:
    return [match.rstrip(".,!?)") for match in URL_RE.findall(text or "")]


_EDIT_PREFIXES = (
    re.compile(r"^(wait|no|nah|actually|instead|oops)[,.!]?\s+", re.IGNORECASE),
    re.compile(
        r"^(just\s+)?(say|make it say|change it to|make it|it should say|update it to)\s+",
        re.IGNORECASE,
    ),
)


def extract_edit(message: str, draft_type: str) -> str:
    """Deterministic reading of an edit instruction: the replacement text."""

    content = message.strip()
    for pattern in _EDIT_PREFIXES:
        content = pattern.sub("", content)
    return format_content(content, draft_type)
