"""Output to the persistence collaborator."""

from sms_ledger.output.operations_writer import (
    OperationWriter,
    PersistenceError,
    load_persisted_transactions,
)

__all__ = ["OperationWriter", "PersistenceError", "load_persisted_transactions"]
