"""Sanitization utilities for safe log output."""

import re
from typing import Optional

# Runs of 4+ digits, optionally already partly masked ("XX1234", "**5678").
# Amounts keep their separators so "1,250.50" is left readable.
_ACCOUNT_NUMBER_PATTERN = re.compile(r"(?<![\d.,])([xX*]*)(\d{4,})(?![\d.,]\d)")

# UPI handles carry the payer's phone number or name before the "@"
_UPI_HANDLE_PATTERN = re.compile(r"\b[\w.\-]+@([a-zA-Z][a-zA-Z0-9]+)\b")

MAX_LOGGED_BODY = 80


def mask_account_numbers(value: Optional[str]) -> Optional[str]:
    """Mask account/card numbers and UPI handles in a message body.

    Keeps the last two digits of long digit runs so that log lines remain
    useful for correlating messages without exposing full identifiers.

    Args:
        value: Message text to sanitize, or None.

    Returns:
        Sanitized text (truncated to MAX_LOGGED_BODY), or None.
    """
    if value is None:
        return None

    masked = _ACCOUNT_NUMBER_PATTERN.sub(
        lambda m: "*" * (len(m.group(1)) + len(m.group(2)) - 2) + m.group(2)[-2:],
        value,
    )
    masked = _UPI_HANDLE_PATTERN.sub(lambda m: f"***@{m.group(1)}", masked)

    if len(masked) > MAX_LOGGED_BODY:
        return masked[:MAX_LOGGED_BODY] + "..."
    return masked
