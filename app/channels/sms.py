"""Twilio-compatible SMS channel: webhook parsing, TwiML replies and senders."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol
from xml.sax.saxutils import escape

import requests

from ..config import TwilioCredentials
from ..core.phones import mask_phone, to_e164
from .base import ChannelAdapter, InboundMessage, SendResult

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = 1600
TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def split_message(text: str, limit: int = SMS_MAX_LENGTH) -> list[str]:
    """Split ``text`` into chunks of at most ``limit`` characters.

    Breaks prefer a newline, then a space, inside the window.
    """

    if len(text) <= limit:
        return [text]
    parts: list[str] = []
    remaining = text
    while len(remaining) > limit:
        window = remaining[:limit]
        cut = window.rfind("\n")
        if cut < limit // 2:
            cut = window.rfind(" ")
        if cut < limit // 2:
            cut = limit
        parts.append(remaining[:cut].rstrip())
        remaining = remaining[cut:].lstrip()
    if remaining:
        parts.append(remaining)
    return parts


def compute_signature(auth_token: str, url: str, params: Mapping[str, Any]) -> str:
    """Twilio request signature: base64 HMAC-SHA1 over URL plus sorted params."""

    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


class TwilioSmsAdapter(ChannelAdapter):
    channel_name = "sms"

    def verify_signature(
        self,
        url: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
        config: Mapping[str, Any],
    ) -> bool:
        token = (config or {}).get("auth_token")
        if not token:
            return True
        received = headers.get("X-Twilio-Signature") or headers.get("x-twilio-signature")
        if not received:
            return False
        expected = compute_signature(token, url, payload)
        return hmac.compare_digest(received, expected)

    def parse_incoming(
        self,
        payload: Mapping[str, Any],
        headers: Mapping[str, str],
        config: Mapping[str, Any],
    ) -> Iterable[InboundMessage]:
        sender = str(payload.get("From") or "").strip()
        if not sender:
            return []
        return [
            InboundMessage(
                channel=self.channel_name,
                sender=sender,
                recipient=str(payload.get("To") or "") or None,
                text=str(payload.get("Body") or "").strip(),
                external_id=payload.get("MessageSid"),
                metadata={"num_media": payload.get("NumMedia")},
            )
        ]

    def build_reply(self, messages: Iterable[str]) -> tuple[str, str]:
        parts = []
        for message in messages:
            for chunk in split_message(message):
                parts.append(f"<Message>{escape(chunk)}</Message>")
        body = '<?xml version="1.0" encoding="UTF-8"?><Response>' + "".join(parts) + "</Response>"
        return body, "application/xml"


# ---------------------------------------------------------------------------
# Outbound senders
# ---------------------------------------------------------------------------


class SmsSender(Protocol):
    def send(self, recipient: str, text: str) -> SendResult: ...


class TwilioRestSender:
    """Send SMS through the Twilio REST API. Never raises, never retries."""

    def __init__(
        self,
        credentials: TwilioCredentials,
        *,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        if not credentials.can_send:
            raise ValueError("Twilio credentials are incomplete")
        self.credentials = credentials
        self.session = session or requests.Session()
        self.timeout = timeout

    def send(self, recipient: str, text: str) -> SendResult:
        url = f"{TWILIO_API_BASE}/Accounts/{self.credentials.account_sid}/Messages.json"
        try:
            response = self.session.post(
                url,
                data={
                    "From": self.credentials.from_number,
                    "To": to_e164(recipient),
                    "Body": text,
                },
                auth=(self.credentials.account_sid, self.credentials.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("SMS to %s failed: %s", mask_phone(recipient), exc)
            return SendResult(ok=False, error=str(exc))
        if response.status_code >= 400:
            logger.warning(
                "SMS to %s rejected with status %s", mask_phone(recipient), response.status_code
            )
            return SendResult(ok=False, error=f"HTTP {response.status_code}: {response.text[:200]}")
        try:
            sid = response.json().get("sid")
        except ValueError:
            sid = None
        return SendResult(ok=True, external_id=sid)


class LoggingSender:
    """Default sender when no Twilio credentials are configured."""

    def send(self, recipient: str, text: str) -> SendResult:
        logger.info("SMS (not sent) to %s: %s", mask_phone(recipient), text[:80])
        return SendResult(ok=True)


def build_sender(credentials: TwilioCredentials, *, timeout: float = 10.0) -> SmsSender:
    if credentials.can_send:
        return TwilioRestSender(credentials, timeout=timeout)
    return LoggingSender()
