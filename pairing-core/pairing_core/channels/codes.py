"""
Code Utilities
==============
Generation, normalization and display formatting of pairing codes.
"""

import hmac
import re
import secrets

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")


def generate_numeric_code(length: int) -> str:
    """
    Generate a secure random numeric code.

    Args:
        length: Number of digits

    Returns:
        Zero-padded code string
    """
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_backup_code(num_bytes: int = 6) -> str:
    """Generate an uppercase hex backup code (two characters per byte)."""
    return secrets.token_hex(num_bytes).upper()


def normalize_code(code: str) -> str:
    """Strip formatting characters (dashes, spaces) and uppercase."""
    return _NON_ALNUM.sub("", code or "").upper()


def codes_match(submitted: str, stored: str) -> bool:
    """
    Compare a submitted code with a stored one.

    Uses constant-time comparison on the normalized forms.
    """
    left = normalize_code(submitted)
    right = normalize_code(stored)
    if not left:
        return False
    return hmac.compare_digest(left.encode(), right.encode())


def group_code(code: str, size: int) -> str:
    """Split a code into dash-separated groups of ``size`` characters."""
    clean = normalize_code(code)
    return "-".join(clean[i:i + size] for i in range(0, len(clean), size))
