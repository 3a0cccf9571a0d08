"""Tests for operation output and stored transaction loading."""

import json
from decimal import Decimal
from pathlib import Path

import pytest

from sms_ledger.models.operations import UpdateOp
from sms_ledger.output.operations_writer import (
    OperationWriter,
    PersistenceError,
    load_persisted_transactions,
)
from sms_ledger.utils.date_utils import parse_epoch_millis


class TestOperationWriter:
    """Tests for OperationWriter."""

    def test_writes_json_lines(self, tmp_path: Path) -> None:
        """Test operations are written one per line in bulkWrite shape."""
        ops = [
            UpdateOp(
                filter={"userId": "u1", "smsId": "1718000000123"},
                set_fields={
                    "amount": Decimal("1250.50"),
                    "date": parse_epoch_millis("1718000000123"),
                    "channel": "UPI",
                },
                upsert=True,
            ),
            UpdateOp(
                filter={"userId": "u1", "smsId": "2"},
                set_fields={"channel": "Other"},
                unset_fields=("accountType",),
            ),
        ]
        path = tmp_path / "out" / "ops.jsonl"

        written = OperationWriter(path).write(ops)

        assert written == 2
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])["updateOne"]
        assert first["filter"] == {"smsId": "1718000000123", "userId": "u1"}
        assert first["update"]["$set"]["amount"] == "1250.50"
        assert first["update"]["$set"]["date"] == "2024-06-10T06:13:20.123+00:00"
        assert first["upsert"] is True
        second = json.loads(lines[1])["updateOne"]
        assert second["update"] == {"$set": {"channel": "Other"}, "$unset": {"accountType": ""}}
        assert second["upsert"] is False

    def test_empty_batch(self, tmp_path: Path) -> None:
        """Test writing nothing creates an empty file."""
        path = tmp_path / "ops.jsonl"

        assert OperationWriter(path).write([]) == 0
        assert path.read_text(encoding="utf-8") == ""

    def test_write_failure(self, tmp_path: Path) -> None:
        """Test I/O errors become PersistenceError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with pytest.raises(PersistenceError) as exc_info:
            OperationWriter(blocker / "ops.jsonl").write([UpdateOp(filter={"smsId": "1"})])

        assert exc_info.value.path == blocker / "ops.jsonl"


class TestLoadPersistedTransactions:
    """Tests for load_persisted_transactions."""

    def test_json_array(self, tmp_path: Path) -> None:
        """Test loading a JSON array export."""
        path = tmp_path / "export.json"
        path.write_text(
            json.dumps(
                [
                    {"userId": "u1", "smsId": "1", "body": "card XX810", "channel": "Card"},
                    {"userId": "u1", "smsId": "manual-2", "description": "Cash", "mode": "Wallet",
                     "accountType": "cash"},
                ]
            ),
            encoding="utf-8",
        )

        transactions = load_persisted_transactions(path)

        assert [t.sms_id for t in transactions] == ["1", "manual-2"]
        assert transactions[1].body == "Cash"
        assert transactions[1].channel == "Wallet"
        assert transactions[1].account_type == "cash"
        assert transactions[0].document["userId"] == "u1"

    def test_json_lines_skips_invalid_entries(self, tmp_path: Path) -> None:
        """Test JSON Lines export with entries lacking smsId."""
        path = tmp_path / "export.jsonl"
        path.write_text(
            '{"smsId": "1", "body": "a", "channel": "Bank"}\n'
            "\n"
            '{"body": "no id"}\n'
            '"not an object"\n'
            '{"smsId": "3", "body": "c", "channel": "UPI"}\n',
            encoding="utf-8",
        )

        transactions = load_persisted_transactions(path)

        assert [t.sms_id for t in transactions] == ["1", "3"]

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test malformed exports raise PersistenceError."""
        path = tmp_path / "export.jsonl"
        path.write_text("{not json}\n", encoding="utf-8")

        with pytest.raises(PersistenceError, match="not valid JSON"):
            load_persisted_transactions(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing export raises PersistenceError."""
        with pytest.raises(PersistenceError, match="Cannot read"):
            load_persisted_transactions(tmp_path / "missing.json")
