"""Transaction data models for classified notifications."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class Direction(Enum):
    """Direction of money movement."""

    CREDIT = "credit"  # Money in
    DEBIT = "debit"  # Money out


class Status(Enum):
    """Outcome reported by the notification."""

    SUCCESS = "success"
    FAILED = "failed"  # Failed, reversed, refunded or declined


@dataclass
class Transaction:
    """A transaction extracted from a single notification (or a merged group).

    Instances are produced by the classifier and only replaced, never
    edited in place, by the merge and mapping stages.

    Attributes:
        sms_id: Stable identifier, the epoch-millisecond timestamp of the
            earliest message this record was built from.
        date: Receive time of that earliest message (UTC).
        body: Message body in original case, whitespace collapsed.
        amount: Positive transaction amount.
        direction: Credit or debit.
        channel: Payment channel ("UPI", "Card", "Bank", "Other") or the
            name given by a mapping rule.
        source: Caller-supplied partition label (e.g. a profile name).
        status: Success or failed.
        account_type: Account type attached by a mapping rule, if any.
        merged_sms_ids: Ids of later notifications folded into this one.
    """

    sms_id: str
    date: datetime
    body: str
    amount: Decimal
    direction: Direction
    channel: str
    source: str
    status: Status = Status.SUCCESS
    account_type: str | None = None
    merged_sms_ids: list[str] = field(default_factory=list)

    @property
    def is_failed(self) -> bool:
        """Whether the notification reports a failed or reversed payment."""
        return self.status is Status.FAILED

    def to_document(self) -> dict[str, Any]:
        """Build the document persisted for this transaction.

        Returns:
            Dict with the storage field names. Values keep their Python
            types (Decimal, datetime); serialization is the writer's job.
        """
        document: dict[str, Any] = {
            "smsId": self.sms_id,
            "date": self.date,
            "body": self.body,
            "amount": self.amount,
            "direction": self.direction.value,
            "channel": self.channel,
            "source": self.source,
            "status": self.status.value,
        }
        if self.account_type is not None:
            document["accountType"] = self.account_type
        if self.merged_sms_ids:
            document["mergedSmsIds"] = list(self.merged_sms_ids)
        return document

    def __repr__(self) -> str:
        return (
            f"Transaction(sms_id={self.sms_id!r}, "
            f"amount={self.amount}, "
            f"direction={self.direction.value}, "
            f"channel={self.channel!r}, "
            f"status={self.status.value})"
        )


@dataclass
class PersistedTransaction:
    """A transaction document read back from storage for remapping.

    Only the fields the mapping resolver needs are lifted out; the full
    document is kept for reference.

    Attributes:
        sms_id: Stored smsId (manual entries carry a synthetic prefix).
        body: Stored message body (or description for manual entries).
        channel: Current channel label.
        account_type: Current account type, None when never mapped.
        document: The original stored document.
    """

    sms_id: str
    body: str
    channel: str
    account_type: str | None = None
    document: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "PersistedTransaction":
        """Create from a stored document.

        Older documents name the channel "mode"; both spellings are read.

        Args:
            data: Stored transaction document.

        Returns:
            A new PersistedTransaction.

        Raises:
            ValueError: If the document has no smsId.
        """
        sms_id = data.get("smsId")
        if not sms_id:
            raise ValueError("Transaction document has no smsId")

        channel = data.get("channel", data.get("mode", ""))
        account_type = data.get("accountType")

        return cls(
            sms_id=str(sms_id),
            body=str(data.get("body") or data.get("description") or ""),
            channel=str(channel or ""),
            account_type=str(account_type) if account_type else None,
            document=dict(data),
        )
