"""Normalization of Ethiopian phone numbers to the ``251xxxxxxxxx`` form."""

from __future__ import annotations

import re
from dataclasses import dataclass

COUNTRY_CODE = "251"
_VALID_PATTERN = re.compile(r"^251\d{9}$")


@dataclass(frozen=True)
class PhoneValidation:
    is_valid: bool
    formatted: str | None = None
    error: str | None = None


def validate_phone(phone_number: str | None) -> PhoneValidation:
    if not phone_number:
        return PhoneValidation(is_valid=False, error="Phone number is required")

    digits = re.sub(r"\D", "", phone_number)
    if digits.startswith("0"):
        digits = COUNTRY_CODE + digits[1:]
    elif digits.startswith("9") and len(digits) == 9:
        digits = COUNTRY_CODE + digits
    elif not digits.startswith(COUNTRY_CODE):
        digits = COUNTRY_CODE + digits

    if not _VALID_PATTERN.match(digits):
        return PhoneValidation(
            is_valid=False,
            error="Phone number must be a valid Ethiopian number (format: 251xxxxxxxxx)",
        )
    return PhoneValidation(is_valid=True, formatted=digits)


def is_valid_phone(phone_number: str | None) -> bool:
    return validate_phone(phone_number).is_valid


def format_phone_number(phone_number: str) -> str:
    validation = validate_phone(phone_number)
    return validation.formatted if validation.formatted else phone_number


def format_phone_for_display(phone_number: str) -> str:
    validation = validate_phone(phone_number)
    if not validation.formatted:
        return phone_number
    phone = validation.formatted
    # +251 9XX XXX XXX
    return f"+{phone[:3]} {phone[3:6]} {phone[6:9]} {phone[9:]}"
