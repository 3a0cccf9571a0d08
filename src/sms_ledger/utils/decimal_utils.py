"""Decimal utilities for monetary amounts.

All amounts are kept as Decimal to avoid floating-point drift when the same
notification is parsed, merged and compared across sync runs.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Thousands separators seen in Indian bank SMS: "1,250.50", "1,25,000"
THOUSANDS_SEPARATOR_PATTERN = re.compile(r"(?<=\d),(?=\d)")


def parse_amount(raw_amount: str) -> Decimal:
    """Parse an amount captured from a message into a Decimal.

    Handles western ("12,345.67") and Indian lakh ("1,23,456.78") grouping.
    Currency markers must already be stripped by the caller.

    Args:
        raw_amount: The captured numeric text.

    Returns:
        Parsed amount.

    Raises:
        ValueError: If the text is empty or not a finite number.
    """
    if not raw_amount:
        raise ValueError("Empty amount string")

    amount_str = THOUSANDS_SEPARATOR_PATTERN.sub("", raw_amount.strip())

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Cannot parse amount '{raw_amount}': {e}") from e

    if not amount.is_finite():
        raise ValueError(f"Amount is not a finite number: '{raw_amount}'")

    return amount


def format_amount(amount: Decimal, decimal_places: int = 2) -> str:
    """Format a Decimal amount for display.

    Args:
        amount: The amount to format.
        decimal_places: Number of decimal places (default 2).

    Returns:
        Formatted string like "1,250.50".
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    rounded = amount.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)
    return f"{rounded:,}"
