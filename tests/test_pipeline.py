"""Tests for the sync pipeline."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from sms_ledger.models.mapping import MappingRule
from sms_ledger.models.message import RawMessage
from sms_ledger.models.transaction import Direction
from sms_ledger.parsers.base import (
    BackupBatch,
    BackupSource,
    BackupSourceError,
    ReauthenticationRequiredError,
)
from sms_ledger.processing.pipeline import (
    SyncPipeline,
    apply_mapping,
    build_upsert_ops,
    classify,
    merge,
)

MESSAGES = [
    # Bank and UPI app report the same payment 90 seconds apart
    RawMessage(
        body="Rs. 1,250.50 debited from A/c XX1234 on 10-06-24",
        timestamp_millis="1718000000000",
    ),
    RawMessage(
        body="Rs. 1,250.50 debited from A/c XX1234 via UPI to merchant@ybl. UPI Ref 412345678901",
        timestamp_millis="1718000090000",
    ),
    RawMessage(body="Get 5% cashback on your next Rs 500 spent", timestamp_millis="1718000100000"),
    RawMessage(body="Rs 40,000.00 credited to A/c XX1234 by NEFT", timestamp_millis="1718003600000"),
]

SALARY_RULE = MappingRule("Salary Account", ("A/c XX1234",), "savings")


class StubSource(BackupSource):
    """Backup source returning a fixed batch."""

    def __init__(self, batch: BackupBatch):
        self.batch = batch

    def fetch(self) -> BackupBatch:
        return self.batch


class FailingSource(BackupSource):
    """Backup source raising a fixed error."""

    def __init__(self, error: BackupSourceError):
        self.error = error

    def fetch(self) -> BackupBatch:
        raise self.error


class TestStages:
    """Tests for the stage functions."""

    def test_classify_merge_map(self) -> None:
        """Test the three stages end to end."""
        transactions = apply_mapping(merge(classify(MESSAGES, "personal")), [SALARY_RULE])

        assert len(transactions) == 2
        debit, credit = transactions
        assert debit.sms_id == "1718000000000"
        assert debit.merged_sms_ids == ["1718000090000"]
        assert debit.amount == Decimal("1250.50")
        assert debit.direction == Direction.DEBIT
        assert "merchant@ybl" in debit.body
        assert debit.channel == "Salary Account"
        assert credit.direction == Direction.CREDIT
        assert credit.account_type == "savings"

    def test_idempotent(self) -> None:
        """Test the same batch always yields the same transactions."""
        pipeline = SyncPipeline()

        first = pipeline.run(MESSAGES, "personal", [SALARY_RULE])
        second = pipeline.run(MESSAGES, "personal", [SALARY_RULE])

        assert first == second
        assert build_upsert_ops(first, "u1") == build_upsert_ops(second, "u1")

    def test_build_upsert_ops(self) -> None:
        """Test one keyed upsert per transaction."""
        transactions = merge(classify(MESSAGES, "personal"))

        ops = build_upsert_ops(transactions, "u1")

        assert len(ops) == 2
        op = ops[0]
        assert op.upsert is True
        assert op.filter == {"userId": "u1", "smsId": "1718000000000"}
        assert op.set_fields["userId"] == "u1"
        assert op.set_fields["amount"] == Decimal("1250.50")
        assert op.set_fields["direction"] == "debit"
        assert op.set_fields["source"] == "personal"
        assert op.set_fields["mergedSmsIds"] == ["1718000090000"]
        assert "accountType" not in op.set_fields
        assert op.unset_fields == ("accountType",)

    def test_mapped_upsert_keeps_account_type(self) -> None:
        """Test only unmapped transactions clear a stored account type."""
        neft = MappingRule("Salary Account", ("by NEFT",), "savings")
        transactions = apply_mapping(merge(classify(MESSAGES, "personal")), [neft])
        debit, credit = build_upsert_ops(transactions, "u1")

        assert credit.set_fields["accountType"] == "savings"
        assert credit.unset_fields == ()
        assert debit.to_bulk_write()["updateOne"]["update"]["$unset"] == {"accountType": ""}


class TestSync:
    """Tests for SyncPipeline.sync."""

    def test_sync_writes_once(self) -> None:
        """Test the sink receives the full batch once."""
        source = StubSource(BackupBatch(name="sms-20240610.xml", messages=list(MESSAGES)))
        sink = MagicMock()
        sink.write.return_value = 2

        result = SyncPipeline().sync(source, "personal", "u1", [SALARY_RULE], sink=sink)

        sink.write.assert_called_once()
        assert sink.write.call_args.args[0] == result.operations
        assert result.backup_name == "sms-20240610.xml"
        assert result.messages_read == 4
        assert result.classified == 3
        assert result.merged == 2
        assert result.written == 2

    def test_dry_run(self) -> None:
        """Test that no sink means nothing is written."""
        source = StubSource(BackupBatch(name="b.xml", messages=list(MESSAGES)))

        result = SyncPipeline().sync(source, "personal", "u1")

        assert result.written == 0
        assert len(result.operations) == 2

    def test_reauthentication_error_propagates(self) -> None:
        """Test an auth failure surfaces before any write."""
        sink = MagicMock()
        source = FailingSource(ReauthenticationRequiredError("Token revoked"))

        with pytest.raises(ReauthenticationRequiredError, match="Token revoked"):
            SyncPipeline().sync(source, "personal", "u1", sink=sink)

        sink.write.assert_not_called()

    def test_source_error_propagates(self) -> None:
        """Test other fetch failures surface as BackupSourceError."""
        sink = MagicMock()
        source = FailingSource(BackupSourceError("Folder not found", "/backups"))

        with pytest.raises(BackupSourceError) as exc_info:
            SyncPipeline().sync(source, "personal", "u1", sink=sink)

        assert not isinstance(exc_info.value, ReauthenticationRequiredError)
        assert exc_info.value.location == "/backups"
        sink.write.assert_not_called()

    def test_empty_backup(self) -> None:
        """Test an empty backup produces no operations."""
        sink = MagicMock()
        sink.write.return_value = 0

        result = SyncPipeline().sync(StubSource(BackupBatch(name="e.xml")), "p", "u1", sink=sink)

        assert result.operations == []
        sink.write.assert_called_once_with([])
