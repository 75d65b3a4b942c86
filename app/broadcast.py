"""Parallel, best-effort SMS fan-out."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .channels.base import SendResult
from .channels.sms import SmsSender
from .core.phones import mask_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipientOutcome:
    phone: str
    ok: bool
    error: str | None = None


@dataclass
class BroadcastReport:
    outcomes: list[RecipientOutcome] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def delivered(self) -> list[str]:
        return [o.phone for o in self.outcomes if o.ok]


class BroadcastRunner:
    """Send one text to many recipients on a :class:`ThreadPoolExecutor`.

    Each recipient's outcome is collected independently: a failed or raising
    send is recorded and counted, the rest carry on. Nothing is retried.
    """

    def __init__(self, sender: SmsSender, max_workers: int = 8):
        self.sender = sender
        self.max_workers = max(1, max_workers)

    def _send_one(self, phone: str, text: str) -> RecipientOutcome:
        try:
            result: SendResult = self.sender.send(phone, text)
        except Exception as exc:
            logger.exception("Sender raised for %s", mask_phone(phone))
            return RecipientOutcome(phone, False, str(exc))
        return RecipientOutcome(phone, result.ok, result.error)

    def run(self, recipients: Sequence[str], text: str) -> BroadcastReport:
        if not recipients:
            return BroadcastReport()
        workers = min(self.max_workers, len(recipients))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="broadcast") as pool:
            futures = [pool.submit(self._send_one, phone, text) for phone in recipients]
            report = BroadcastReport([future.result() for future in futures])
        logger.info("Broadcast finished: sent=%s failed=%s", report.sent, report.failed)
        return report
