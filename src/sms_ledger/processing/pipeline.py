"""Sync pipeline: backup → transactions → upsert operations.

The stage functions are pure: the same messages and rules always give the
same transactions, so re-syncing a backup rewrites the same documents.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Protocol

from sms_ledger.models.mapping import MappingRule
from sms_ledger.models.message import RawMessage
from sms_ledger.models.operations import UpdateOp
from sms_ledger.models.transaction import Transaction
from sms_ledger.parsers.base import BackupSource
from sms_ledger.processing.classifier import Classifier
from sms_ledger.processing.mapper import apply_mapping, remap
from sms_ledger.processing.merger import DEFAULT_MERGE_WINDOW, Merger
from sms_ledger.processing.rules import DEFAULT_RULES, ClassifierRules
from sms_ledger.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)

__all__ = [
    "OperationSink",
    "SyncPipeline",
    "SyncResult",
    "apply_mapping",
    "build_upsert_ops",
    "classify",
    "merge",
    "remap",
]


class OperationSink(Protocol):
    """Anything that can persist a batch of update operations."""

    def write(self, operations: list[UpdateOp]) -> int: ...


def classify(
    messages: list[RawMessage],
    source_label: str,
    rules: ClassifierRules = DEFAULT_RULES,
) -> list[Transaction]:
    """Turn raw messages into transactions, dropping everything else.

    Args:
        messages: Raw messages of one batch.
        source_label: Partition label stamped on every transaction.
        rules: Classifier tables.

    Returns:
        Transactions in input order.
    """
    return Classifier(rules).classify(messages, source_label)


def merge(
    transactions: list[Transaction],
    window: timedelta = DEFAULT_MERGE_WINDOW,
) -> list[Transaction]:
    """Collapse duplicate notifications of the same payment."""
    return Merger(window).merge(transactions)


def build_upsert_ops(transactions: list[Transaction], user_id: str) -> list[UpdateOp]:
    """Build one upsert per transaction, keyed by (userId, smsId).

    Unmapped transactions also unset accountType, so a stored document
    never keeps the account type of a rule that no longer matches.

    Args:
        transactions: Final transactions of the batch.
        user_id: Owner of the transactions.

    Returns:
        Upsert operations carrying the full document.
    """
    return [
        UpdateOp(
            filter={"userId": user_id, "smsId": txn.sms_id},
            set_fields={"userId": user_id, **txn.to_document()},
            unset_fields=("accountType",) if txn.account_type is None else (),
            upsert=True,
        )
        for txn in transactions
    ]


@dataclass
class SyncResult:
    """Outcome of one sync run.

    Attributes:
        backup_name: Name of the backup file that was read.
        messages_read: Messages in the backup.
        classified: Messages recognised as transactions.
        transactions: Final transactions after merge and mapping.
        operations: Upsert operations built for the store.
        written: Operations handed to the sink (0 on a dry run).
    """

    backup_name: str
    messages_read: int
    classified: int
    transactions: list[Transaction] = field(default_factory=list)
    operations: list[UpdateOp] = field(default_factory=list)
    written: int = 0

    @property
    def merged(self) -> int:
        """Number of transactions after merging duplicates."""
        return len(self.transactions)


class SyncPipeline:
    """Runs one sync request from start to finish.

    Source errors surface before anything is written; the sink is called
    once, at the very end, with the complete batch.
    """

    def __init__(
        self,
        rules: ClassifierRules = DEFAULT_RULES,
        merge_window: timedelta = DEFAULT_MERGE_WINDOW,
    ):
        """Initialize pipeline.

        Args:
            rules: Classifier tables.
            merge_window: Maximum arrival gap between duplicates.
        """
        self.classifier = Classifier(rules)
        self.merger = Merger(merge_window)

    def run(
        self,
        messages: list[RawMessage],
        source_label: str,
        mapping_rules: Sequence[MappingRule] = (),
    ) -> list[Transaction]:
        """Classify, merge and map a batch of messages.

        Args:
            messages: Raw messages of one batch.
            source_label: Partition label.
            mapping_rules: User mapping rules in priority order.

        Returns:
            Final transactions ordered by arrival time.
        """
        classified = self.classifier.classify(messages, source_label)
        merged = self.merger.merge(classified)
        return apply_mapping(merged, mapping_rules)

    def sync(
        self,
        source: BackupSource,
        source_label: str,
        user_id: str,
        mapping_rules: Sequence[MappingRule] = (),
        sink: Optional[OperationSink] = None,
    ) -> SyncResult:
        """Fetch the latest backup and produce (and optionally write) upserts.

        Args:
            source: Where the backup comes from.
            source_label: Partition label stamped on transactions.
            user_id: Owner of the transactions.
            mapping_rules: User mapping rules in priority order.
            sink: Receives the operations; None for a dry run.

        Returns:
            SyncResult with counts, transactions and operations.

        Raises:
            ReauthenticationRequiredError: If the source needs a new sign-in.
            BackupSourceError: If the backup cannot be fetched.
            PersistenceError: If the sink fails.
        """
        with LogContext(logger, "sync", source=source.name, label=source_label, user_id=user_id):
            batch = source.fetch()

            classified = self.classifier.classify(batch.messages, source_label)
            merged = self.merger.merge(classified)
            transactions = apply_mapping(merged, mapping_rules)
            operations = build_upsert_ops(transactions, user_id)

            result = SyncResult(
                backup_name=batch.name,
                messages_read=len(batch.messages),
                classified=len(classified),
                transactions=transactions,
                operations=operations,
            )

            if sink is not None:
                result.written = sink.write(operations)

        logger.info(
            f"Sync of '{source_label}' from {batch.name}: {result.messages_read} messages, "
            f"{result.classified} classified, {result.merged} after merge, "
            f"{result.written} operations written"
        )
        return result
