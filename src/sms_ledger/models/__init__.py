"""Data models for messages, transactions, mapping rules and operations."""

from sms_ledger.models.mapping import MappingRule
from sms_ledger.models.message import RawMessage
from sms_ledger.models.operations import UpdateOp
from sms_ledger.models.transaction import (
    Direction,
    PersistedTransaction,
    Status,
    Transaction,
)

__all__ = [
    "RawMessage",
    "Transaction",
    "PersistedTransaction",
    "Direction",
    "Status",
    "MappingRule",
    "UpdateOp",
]
