"""Message normalizer: the first pipeline stage."""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sms_ledger.models.message import RawMessage
from sms_ledger.utils.date_utils import parse_epoch_millis
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedMessage:
    """A message ready for classification.

    Attributes:
        sms_id: Timestamp string, used as the transaction id.
        date: Parsed receive time (UTC).
        body: Whitespace-collapsed body in original case (for storage).
        text: Lowercase copy of body (for matching).
    """

    sms_id: str
    date: datetime
    body: str
    text: str


def collapse_whitespace(body: str) -> str:
    """Collapse runs of whitespace (including newlines) and trim."""
    return _WHITESPACE.sub(" ", body).strip()


class Normalizer:
    """Normalizes raw backup messages.

    The normalizer:
    - Skips messages missing a body or timestamp
    - Skips messages whose timestamp is not epoch milliseconds
    - Collapses whitespace while keeping the original casing
    - Produces a lowercase working copy for the classifiers
    """

    def normalize(self, messages: list[RawMessage]) -> list[NormalizedMessage]:
        """Normalize a list of raw messages.

        Args:
            messages: Raw messages from a backup.

        Returns:
            Normalized messages, in input order. Malformed ones are dropped.
        """
        normalized = []

        for message in messages:
            result = self.normalize_message(message)
            if result is not None:
                normalized.append(result)

        logger.info(f"Normalized {len(normalized)}/{len(messages)} messages")
        return normalized

    def normalize_message(self, message: RawMessage) -> Optional[NormalizedMessage]:
        """Normalize a single message.

        Args:
            message: Raw message.

        Returns:
            NormalizedMessage, or None if the message is malformed.
        """
        if not message.is_complete:
            logger.debug("Skipping message without body or timestamp")
            return None

        sms_id = message.timestamp_millis.strip()
        try:
            date = parse_epoch_millis(sms_id)
        except ValueError as e:
            logger.debug(f"Skipping message with bad timestamp: {e}")
            return None

        body = collapse_whitespace(message.body)
        return NormalizedMessage(sms_id=sms_id, date=date, body=body, text=body.lower())


def normalize_messages(messages: list[RawMessage]) -> list[NormalizedMessage]:
    """Convenience function to normalize messages.

    Args:
        messages: Raw messages from a backup.

    Returns:
        List of NormalizedMessage objects.
    """
    return Normalizer().normalize(messages)
