"""Amount extraction from normalized message text."""

from decimal import Decimal
from typing import Optional

from sms_ledger.processing.rules import DEFAULT_RULES, ClassifierRules, find_first
from sms_ledger.utils.decimal_utils import parse_amount
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


def extract_amount(text: str, rules: ClassifierRules = DEFAULT_RULES) -> Optional[Decimal]:
    """Return the first monetary amount in a message, or None.

    The amount layers are tried in order (currency prefix, currency
    suffix, keyword-anchored) and the first layer that matches decides:
    if its capture does not parse to a positive number the message has
    no amount, later layers are not consulted.

    Args:
        text: Lowercase, whitespace-collapsed message text.
        rules: Classifier tables.

    Returns:
        Positive Decimal amount, or None.
    """
    found = find_first(rules.amount, text)
    if found is None:
        return None

    rule, match = found
    try:
        amount = parse_amount(match.group(1))
    except ValueError as e:
        logger.debug(f"Amount layer '{rule.result}' matched unparseable value: {e}")
        return None

    if amount <= 0:
        logger.debug(f"Amount layer '{rule.result}' matched non-positive value {amount}")
        return None

    return amount
