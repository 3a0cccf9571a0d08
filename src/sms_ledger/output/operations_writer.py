"""JSON Lines exchange with the document-store collaborator.

Upsert and remap operations are written one per line in bulkWrite shape,
ready to be replayed against the store. Stored transactions are read back
from a JSON array or JSON Lines export for remapping.
"""

import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from sms_ledger.models.operations import UpdateOp
from sms_ledger.models.transaction import PersistedTransaction
from sms_ledger.utils.date_utils import to_iso
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)


class PersistenceError(Exception):
    """Raised when operations cannot be written or exports cannot be read.

    Operations already written before the failure stay written.
    """

    def __init__(self, message: str, path: Path | None = None):
        """Initialize PersistenceError.

        Args:
            message: Error message.
            path: Optional path involved in the failure.
        """
        self.path = path
        super().__init__(message)


def encode_value(value: Any) -> Any:
    """JSON ``default`` hook: Decimal as string, datetime as ISO 8601."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return to_iso(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps_operation(op: UpdateOp) -> str:
    """Serialize one operation as a single JSON line (keys sorted)."""
    return json.dumps(op.to_bulk_write(), default=encode_value, ensure_ascii=False, sort_keys=True)


class OperationWriter:
    """Writes update operations to a JSON Lines file."""

    def __init__(self, path: Path):
        """Initialize writer.

        Args:
            path: Output file; parent directories are created.
        """
        self.path = path

    def write(self, operations: list[UpdateOp]) -> int:
        """Write operations, replacing any previous file content.

        Args:
            operations: Operations to write.

        Returns:
            Number of operations written.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        written = 0
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                for op in operations:
                    f.write(dumps_operation(op))
                    f.write("\n")
                    written += 1
        except OSError as e:
            raise PersistenceError(
                f"Failed writing operations to {self.path} after {written} of "
                f"{len(operations)}: {e}",
                self.path,
            ) from e

        logger.info(f"Wrote {written} operations to {self.path}")
        return written


def load_persisted_transactions(path: Path) -> list[PersistedTransaction]:
    """Load stored transactions from a JSON array or JSON Lines export.

    Documents without an smsId are skipped with a warning.

    Args:
        path: Export file.

    Returns:
        Stored transactions in file order.

    Raises:
        PersistenceError: If the file is missing or not valid JSON.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PersistenceError(f"Cannot read transactions export {path}: {e}", path) from e

    try:
        stripped = text.lstrip()
        if stripped.startswith("["):
            documents = json.loads(stripped)
        else:
            documents = [json.loads(line) for line in text.splitlines() if line.strip()]
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Transactions export {path} is not valid JSON: {e}", path) from e

    transactions: list[PersistedTransaction] = []
    for index, document in enumerate(documents):
        if not isinstance(document, dict):
            logger.warning(f"Skipping non-object entry {index} in {path.name}")
            continue
        try:
            transactions.append(PersistedTransaction.from_document(document))
        except ValueError as e:
            logger.warning(f"Skipping entry {index} in {path.name}: {e}")

    logger.info(f"Loaded {len(transactions)} stored transactions from {path}")
    return transactions
