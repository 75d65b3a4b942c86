"""Base abstractions for text channel adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class InboundMessage:
    """A message normalised from a channel webhook payload."""

    channel: str
    sender: str
    recipient: str | None
    text: str
    external_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class SendResult:
    ok: bool
    error: str | None = None
    external_id: str | None = None


class ChannelAdapter(ABC):
    """Abstract base class encapsulating channel-specific behaviour."""

    #: Lowercase channel identifier used in routes and configuration.
    channel_name: str

    @abstractmethod
    def parse_incoming(
        self,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
        config: Mapping[str, Any],
    ) -> Iterable[InboundMessage]:
        """Convert a webhook payload into normalized messages."""

    def verify_signature(
        self,
        url: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
        config: Mapping[str, Any],
    ) -> bool:
        """Validate authenticity of the webhook payload.

        Adapters can override this to implement signature checks. The default
        implementation returns ``True``.
        """

        return True

    @abstractmethod
    def build_reply(self, messages: Iterable[str]) -> tuple[str, str]:
        """Render synchronous reply text as ``(body, media_type)``."""
