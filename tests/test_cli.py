"""Tests for the command-line interface."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sms_ledger.cli import get_log_level, main, validate_output_path
from sms_ledger.config import load_mappings
from sms_ledger.parsers.base import ReauthenticationRequiredError

BACKUP_XML = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<smses count="3">
  <sms address="VM-HDFCBK" date="1718000000000" body="Rs. 1,250.50 debited from A/c XX1234 on 10-06-24" />
  <sms address="VM-PAYAPP" date="1718000090000" body="Rs. 1,250.50 debited from A/c XX1234 via UPI to merchant@ybl" />
  <sms address="AX-ICICIB" date="1718003600000" body="Rs 40,000.00 credited to card XX810 account" />
</smses>
"""


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run each test from an empty working directory with a config dir."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "settings.yaml").write_text(
        "logging:\n  file: ''\n", encoding="utf-8"
    )
    return tmp_path


def read_ops(path: Path) -> list[dict]:
    """Read a JSON Lines operations file."""
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestHelpers:
    """Tests for CLI helper functions."""

    def test_get_log_level(self) -> None:
        """Test verbosity mapping."""
        assert get_log_level(0) == "WARNING"
        assert get_log_level(1) == "INFO"
        assert get_log_level(3) == "DEBUG"

    def test_validate_output_path(self, tmp_path: Path) -> None:
        """Test paths escaping the base directory are rejected."""
        assert validate_output_path(Path("out/ops.jsonl"), tmp_path) == (
            tmp_path / "out" / "ops.jsonl"
        ).resolve()
        with pytest.raises(ValueError, match="escapes"):
            validate_output_path(Path("../ops.jsonl"), tmp_path)


class TestSyncCommand:
    """Tests for the sync command."""

    def test_sync_writes_operations(self, workspace: Path) -> None:
        """Test a full sync from a backup folder."""
        backups = workspace / "backups"
        backups.mkdir()
        (backups / "sms-20240610123000.xml").write_text(BACKUP_XML, encoding="utf-8")

        code = main(
            ["sync", "-b", str(backups), "-s", "personal", "-u", "u1", "-o", "ops.jsonl"]
        )

        assert code == 0
        ops = read_ops(workspace / "ops.jsonl")
        assert len(ops) == 2
        first = ops[0]["updateOne"]
        assert first["filter"] == {"smsId": "1718000000000", "userId": "u1"}
        assert first["update"]["$set"]["mergedSmsIds"] == ["1718000090000"]
        assert first["upsert"] is True

    def test_sync_applies_mappings(self, workspace: Path) -> None:
        """Test configured mapping rules are applied during sync."""
        (workspace / "config" / "mappings.yaml").write_text(
            "mappings:\n  - name: HDFC Card\n    type: credit_card\n    match_strings: [XX810]\n",
            encoding="utf-8",
        )
        backups = workspace / "backups"
        backups.mkdir()
        (backups / "sms-1.xml").write_text(BACKUP_XML, encoding="utf-8")

        code = main(["sync", "-b", str(backups), "-s", "p", "-u", "u1", "-o", "ops.jsonl"])

        assert code == 0
        credit = read_ops(workspace / "ops.jsonl")[1]["updateOne"]["update"]["$set"]
        assert credit["channel"] == "HDFC Card"
        assert credit["accountType"] == "credit_card"

    def test_dry_run_writes_nothing(self, workspace: Path) -> None:
        """Test --dry-run leaves no operations file."""
        backups = workspace / "backups"
        backups.mkdir()
        (backups / "sms-1.xml").write_text(BACKUP_XML, encoding="utf-8")

        code = main(
            ["sync", "-b", str(backups), "-s", "p", "-u", "u1", "-o", "ops.jsonl", "--dry-run"]
        )

        assert code == 0
        assert not (workspace / "ops.jsonl").exists()

    def test_missing_backup_folder(self, workspace: Path) -> None:
        """Test a missing folder exits with 1."""
        code = main(["sync", "-b", "nowhere", "-s", "p", "-u", "u1", "-o", "ops.jsonl"])

        assert code == 1
        assert not (workspace / "ops.jsonl").exists()

    def test_reauthentication_exit_code(self, workspace: Path) -> None:
        """Test re-authentication errors exit with 2 and write nothing."""
        source = MagicMock()
        source.fetch.side_effect = ReauthenticationRequiredError("Refresh token revoked")

        with patch("sms_ledger.parsers.LocalBackupSource", return_value=source):
            code = main(["sync", "-b", ".", "-s", "p", "-u", "u1", "-o", "ops.jsonl"])

        assert code == 2
        assert not (workspace / "ops.jsonl").exists()

    def test_output_outside_workspace_rejected(self, workspace: Path) -> None:
        """Test output paths escaping the working directory."""
        code = main(["sync", "-b", ".", "-s", "p", "-u", "u1", "-o", "../ops.jsonl"])

        assert code == 1


class TestMappingCommands:
    """Tests for mapping management and remap."""

    def test_add_list_remove(self, workspace: Path) -> None:
        """Test creating, editing and deleting a rule."""
        mappings = workspace / "config" / "mappings.yaml"

        assert main(
            ["mapping", "add", "--name", "HDFC Card", "--type", "credit_card", "--match", "XX810"]
        ) == 0
        assert main(["mapping", "add", "--name", "Wallet", "--match", "paytm"]) == 0
        assert main(
            ["mapping", "add", "--name", "hdfc card", "--type", "debit_card",
             "--match", "XX810", "--match", "XX811"]
        ) == 0

        rules = load_mappings(mappings)
        assert [r.mapping_name for r in rules] == ["hdfc card", "Wallet"]
        assert rules[0].account_type == "debit_card"
        assert rules[0].match_strings == ("XX810", "XX811")

        assert main(["mapping", "list"]) == 0
        assert main(["mapping", "remove", "--name", "Wallet"]) == 0
        assert [r.mapping_name for r in load_mappings(mappings)] == ["hdfc card"]

    def test_remove_unknown(self, workspace: Path) -> None:
        """Test removing a rule that does not exist."""
        assert main(["mapping", "remove", "--name", "Nope"]) == 1

    def test_add_with_remap(self, workspace: Path) -> None:
        """Test adding a rule and remapping stored transactions at once."""
        export = workspace / "export.jsonl"
        export.write_text(
            '{"userId": "u1", "smsId": "1", "body": "Rs 5 spent on card XX810", "channel": "Card"}\n'
            '{"userId": "u1", "smsId": "2", "body": "Rs 9 via UPI", "channel": "UPI"}\n',
            encoding="utf-8",
        )

        code = main(
            ["mapping", "add", "--name", "HDFC Card", "--match", "XX810",
             "-t", str(export), "-u", "u1", "-o", "remap.jsonl"]
        )

        assert code == 0
        ops = read_ops(workspace / "remap.jsonl")
        assert len(ops) == 1
        assert ops[0]["updateOne"]["filter"] == {"smsId": "1", "userId": "u1"}
        assert ops[0]["updateOne"]["update"]["$set"]["channel"] == "HDFC Card"

    def test_remap_after_change_needs_user_id(self, workspace: Path) -> None:
        """Test --transactions without --user-id is refused before saving."""
        export = workspace / "export.jsonl"
        export.write_text(
            '{"smsId": "1", "body": "card XX810", "channel": "Old Card", "accountType": "cc"}\n',
            encoding="utf-8",
        )

        code = main(
            ["mapping", "add", "--name", "HDFC Card", "--match", "XX810",
             "-t", str(export), "-o", "remap.jsonl"]
        )

        assert code == 1
        assert not (workspace / "config" / "mappings.yaml").exists()
        assert not (workspace / "remap.jsonl").exists()

    def test_remap_command(self, workspace: Path) -> None:
        """Test remap resets transactions whose mapping was deleted."""
        export = workspace / "export.json"
        export.write_text(
            json.dumps(
                [
                    {"smsId": "1", "body": "card XX810", "channel": "HDFC Card",
                     "accountType": "credit_card"},
                    {"smsId": "manual-2", "body": "cash", "channel": "Wallet",
                     "accountType": "cash"},
                ]
            ),
            encoding="utf-8",
        )

        code = main(["remap", "-t", str(export), "-u", "u7", "-o", "remap.jsonl"])

        assert code == 0
        [op] = read_ops(workspace / "remap.jsonl")
        assert op["updateOne"]["filter"] == {"smsId": "1", "userId": "u7"}
        assert op["updateOne"]["update"] == {
            "$set": {"channel": "Other"},
            "$unset": {"accountType": ""},
        }

    def test_remap_missing_export(self, workspace: Path) -> None:
        """Test a missing export exits with 1."""
        assert main(["remap", "-t", "missing.json", "-u", "u1", "-o", "r.jsonl"]) == 1


class TestValidateCommand:
    """Tests for the validate command."""

    def test_valid(self, workspace: Path) -> None:
        """Test a valid configuration."""
        assert main(["validate"]) == 0

    def test_invalid(self, workspace: Path) -> None:
        """Test an invalid settings file."""
        (workspace / "config" / "settings.yaml").write_text(
            "merge:\n  window_minutes: -5\n", encoding="utf-8"
        )

        assert main(["validate"]) == 1
