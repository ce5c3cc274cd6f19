"""
Phone Utilities
===============
Validation and masking helpers for phone numbers.
"""

import re

_PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{1,14}$')


def validate_phone(phone: str) -> bool:
    """
    Validate a phone number (E.164, leading + optional).

    Args:
        phone: Phone number

    Returns:
        True if the number is acceptable for pairing
    """
    return bool(phone) and bool(_PHONE_PATTERN.match(phone))


def mask_phone(phone: str) -> str:
    """Mask the middle digits of a phone number for log output."""
    if not phone or len(phone) <= 8:
        return "***"
    return f"{phone[:5]}***{phone[-4:]}"
