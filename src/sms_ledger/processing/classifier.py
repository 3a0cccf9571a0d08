"""Message classifier: turns normalized messages into transactions."""

from collections import Counter
from typing import Optional

from sms_ledger.models.message import RawMessage
from sms_ledger.models.transaction import Direction, Status, Transaction
from sms_ledger.processing.amount_extractor import extract_amount
from sms_ledger.processing.normalizer import NormalizedMessage, Normalizer
from sms_ledger.processing.rules import DEFAULT_RULES, ClassifierRules, first_match
from sms_ledger.utils.logging_config import get_logger
from sms_ledger.utils.sanitize import mask_account_numbers

logger = get_logger(__name__)

# Rejection reasons, used for the per-batch summary
REJECTED_NOISE = "noise"
REJECTED_NO_AMOUNT = "no_amount"
REJECTED_NO_DIRECTION = "no_direction"


def find_noise_term(text: str, rules: ClassifierRules = DEFAULT_RULES) -> Optional[str]:
    """Return the first denylisted term contained in the text, or None.

    Args:
        text: Lowercase message text.
        rules: Classifier tables.
    """
    for term in rules.denylist:
        if term in text:
            return term
    return None


def classify_direction(text: str, rules: ClassifierRules = DEFAULT_RULES) -> Optional[Direction]:
    """Classify a message as credit or debit (debit phrases checked first).

    Returns:
        Direction, or None when no phrase matches.
    """
    return first_match(rules.direction, text)


def classify_channel(text: str, rules: ClassifierRules = DEFAULT_RULES) -> str:
    """Classify the payment channel; the first matching category wins."""
    return first_match(rules.channel, text) or rules.default_channel


def classify_status(text: str, rules: ClassifierRules = DEFAULT_RULES) -> Status:
    """Flag failed, reversed, refunded or declined transactions."""
    return first_match(rules.status, text) or Status.SUCCESS


class Classifier:
    """Classifies messages into transactions.

    For each message, in order:
    1. Noise filter: denylisted terms reject the message
    2. Amount extraction: no positive amount rejects the message
    3. Direction: no debit/credit phrase rejects the message
    4. Channel and status: always assigned, never reject

    Rejections are expected and frequent; they are counted, not raised.
    """

    def __init__(self, rules: ClassifierRules = DEFAULT_RULES):
        """Initialize classifier.

        Args:
            rules: Immutable classifier tables.
        """
        self.rules = rules
        self.normalizer = Normalizer()

    def classify(self, messages: list[RawMessage], source: str) -> list[Transaction]:
        """Classify a batch of raw messages.

        Args:
            messages: Raw messages from one backup.
            source: Partition label stamped on every transaction.

        Returns:
            Transactions in input order.
        """
        normalized = self.normalizer.normalize(messages)
        rejected: Counter[str] = Counter()
        transactions = []

        for message in normalized:
            txn = self._classify_normalized(message, source, rejected)
            if txn is not None:
                transactions.append(txn)

        logger.info(
            f"Classified {len(transactions)}/{len(messages)} messages for source '{source}' "
            f"(noise: {rejected[REJECTED_NOISE]}, no amount: {rejected[REJECTED_NO_AMOUNT]}, "
            f"no direction: {rejected[REJECTED_NO_DIRECTION]}, "
            f"malformed: {len(messages) - len(normalized)})"
        )
        return transactions

    def classify_message(self, message: RawMessage, source: str) -> Optional[Transaction]:
        """Classify a single raw message.

        Args:
            message: Raw message.
            source: Partition label.

        Returns:
            Transaction, or None when the message is not a transaction.
        """
        normalized = self.normalizer.normalize_message(message)
        if normalized is None:
            return None
        return self._classify_normalized(normalized, source, Counter())

    def _classify_normalized(
        self,
        message: NormalizedMessage,
        source: str,
        rejected: Counter[str],
    ) -> Optional[Transaction]:
        text = message.text

        noise_term = find_noise_term(text, self.rules)
        if noise_term is not None:
            rejected[REJECTED_NOISE] += 1
            logger.debug(
                f"Rejected {message.sms_id} as noise ('{noise_term}'): "
                f"{mask_account_numbers(message.body)}"
            )
            return None

        amount = extract_amount(text, self.rules)
        if amount is None:
            rejected[REJECTED_NO_AMOUNT] += 1
            logger.debug(f"Rejected {message.sms_id}: no amount")
            return None

        direction = classify_direction(text, self.rules)
        if direction is None:
            rejected[REJECTED_NO_DIRECTION] += 1
            logger.debug(
                f"Rejected {message.sms_id}: no direction in "
                f"{mask_account_numbers(message.body)}"
            )
            return None

        return Transaction(
            sms_id=message.sms_id,
            date=message.date,
            body=message.body,
            amount=amount,
            direction=direction,
            channel=classify_channel(text, self.rules),
            source=source,
            status=classify_status(text, self.rules),
        )


def classify_messages(
    messages: list[RawMessage],
    source: str,
    rules: ClassifierRules = DEFAULT_RULES,
) -> list[Transaction]:
    """Convenience function to classify messages.

    Args:
        messages: Raw messages from one backup.
        source: Partition label.
        rules: Classifier tables.

    Returns:
        List of classified transactions.
    """
    return Classifier(rules).classify(messages, source)
