"""
Phone number normalization.

Everything that touches the contact allowlist stores and compares numbers in
E.164 form (+15551234567), whatever punctuation the caller ID or transcript
arrived with.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")
_E164 = re.compile(r"^\+[1-9]\d{1,14}$")


def normalize_phone_number(phone: Optional[str], default_country_code: str = "1") -> Optional[str]:
    """
    Normalize a phone number to E.164.

    Examples:
        normalize_phone_number("(555) 123-4567")  -> "+15551234567"
        normalize_phone_number("555-123-4567")    -> "+15551234567"
        normalize_phone_number("+1 555 123 4567") -> "+15551234567"

    Returns:
        The E.164 string, or None when fewer than 10 digits remain.
    """
    if phone is None:
        return None

    text = str(phone).strip()
    digits = _NON_DIGITS.sub("", text)
    if not digits:
        return None

    if len(digits) == 10 and not text.startswith("+"):
        # National number without a country code
        digits = f"{default_country_code}{digits}"
    elif len(digits) < 10:
        logger.warning(f"Invalid phone number: only {len(digits)} digits")
        return None

    return f"+{digits}"


def is_e164(phone: Optional[str]) -> bool:
    """Check whether a number is already in E.164 form."""
    return bool(phone) and bool(_E164.match(phone))


def format_phone_for_display(phone: Optional[str]) -> str:
    """Format a North American E.164 number as (555) 123-4567."""
    if not phone:
        return ""
    national = phone[2:] if phone.startswith("+1") else phone
    if len(national) == 10 and national.isdigit():
        return f"({national[:3]}) {national[3:6]}-{national[6:]}"
    return phone
