"""Phone number normalisation helpers."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D+")

MIN_PHONE_DIGITS = 10


def normalize_phone(phone: str | None) -> str:
    """Strip everything but digits and drop a leading US country code."""

    digits = _NON_DIGITS.sub("", phone or "")
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits


def last_ten_digits(phone: str | None) -> str:
    return normalize_phone(phone)[-10:]


def is_valid_phone(phone: str | None) -> bool:
    return len(normalize_phone(phone)) >= MIN_PHONE_DIGITS


def to_e164(phone: str) -> str:
    digits = normalize_phone(phone)
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def mask_phone(phone: str | None) -> str:
    digits = normalize_phone(phone)
    if len(digits) <= 4:
        return "***"
    return f"***{digits[-4:]}"
