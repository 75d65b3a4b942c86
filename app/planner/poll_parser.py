"""Pure regex parser for replies to a broadcast poll.

Rules run in a fixed order and the first match wins: negative, affirmative,
hedge, then a bare "running late" which counts as Yes. Negative wins ties, so
"no, but I'll try to come late" is a No with the trailing clause as its note.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

Verdict = Literal["Yes", "No", "Maybe", "Unknown"]

_NEGATIVE = re.compile(
    r"\b(?:can'?t|cannot|won'?t|unable|not coming|not going|busy|unavailable|no|nope|nah)\b|^n$",
    re.IGNORECASE,
)
_AFFIRMATIVE = re.compile(
    r"\b(?:yes|yep|yeah|yea|yup|coming|going|will be there|i'?ll be there|count me in|i'?m in)\b"
    r"|^(?:y|sure|ok|okay)$",
    re.IGNORECASE,
)
_HEDGE = re.compile(
    r"\b(?:maybe|might|possibly|perhaps|not sure|depends|idk)\b",
    re.IGNORECASE,
)
_LATE = re.compile(r"\b(?:running late|late)\b", re.IGNORECASE)

_SEPARATORS = " \t\n,.;:!-–—"


@dataclass(frozen=True)
class ParsedPollResponse:
    verdict: Verdict
    note: str | None = None

    @property
    def is_known(self) -> bool:
        return self.verdict != "Unknown"


def _note_after(text: str, match: re.Match[str]) -> str | None:
    # Only a leading keyword is stripped; a keyword mid-sentence keeps the
    # whole reply as context.
    if text[: match.start()].strip(_SEPARATORS):
        return text
    remainder = text[match.end():].strip(_SEPARATORS)
    return remainder or None


def parse_poll_response(text: str) -> ParsedPollResponse:
    """Classify ``text`` as Yes, No, Maybe or Unknown and extract a note."""

    cleaned = (text or "").strip()
    if not cleaned:
        return ParsedPollResponse("Unknown", None)

    for pattern, verdict in (
        (_NEGATIVE, "No"),
        (_AFFIRMATIVE, "Yes"),
        (_HEDGE, "Maybe"),
    ):
        match = pattern.search(cleaned)
        if match:
            return ParsedPollResponse(verdict, _note_after(cleaned, match))

    if _LATE.search(cleaned):
        return ParsedPollResponse("Yes", cleaned)

    return ParsedPollResponse("Unknown", cleaned)


def summarize_poll_responses(verdicts: Iterable[str]) -> dict[str, int]:
    """Count yes/no/maybe verdicts."""

    summary = {"yes": 0, "no": 0, "maybe": 0, "total": 0}
    for verdict in verdicts:
        key = verdict.lower()
        if key in summary:
            summary[key] += 1
        summary["total"] += 1
    return summary
