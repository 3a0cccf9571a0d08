"""Tests for sanitizing, timestamp and logging helpers."""

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from sms_ledger.utils.date_utils import parse_epoch_millis, to_iso
from sms_ledger.utils.logging_config import LogContext, get_logger, setup_logging
from sms_ledger.utils.sanitize import MAX_LOGGED_BODY, mask_account_numbers


class TestMaskAccountNumbers:
    """Tests for mask_account_numbers."""

    def test_masks_accounts_and_handles(self) -> None:
        """Test account digits and UPI handles are hidden."""
        body = "Rs 1,250.50 debited from A/c XX1234 to 9876543210@ybl"

        masked = mask_account_numbers(body)

        assert masked is not None
        assert "1,250.50" in masked
        assert "XX1234" not in masked
        assert "****34" in masked
        assert "9876543210" not in masked
        assert masked.endswith("@ybl")

    def test_truncates_long_bodies(self) -> None:
        """Test long bodies are cut for the log."""
        masked = mask_account_numbers("a" * 200)

        assert masked == "a" * MAX_LOGGED_BODY + "..."

    def test_none(self) -> None:
        """Test None passes through."""
        assert mask_account_numbers(None) is None


class TestEpochMillis:
    """Tests for timestamp helpers."""

    def test_parse(self) -> None:
        """Test epoch milliseconds become an aware UTC datetime."""
        moment = parse_epoch_millis("1718000000123")

        assert moment == datetime(2024, 6, 10, 6, 13, 20, 123000, tzinfo=timezone.utc)
        assert to_iso(moment) == "2024-06-10T06:13:20.123+00:00"

    @pytest.mark.parametrize("raw", ["", "  ", "abc", "-5", "1.5e12", "9" * 30])
    def test_invalid(self, raw: str) -> None:
        """Test invalid timestamps raise ValueError."""
        with pytest.raises(ValueError):
            parse_epoch_millis(raw)


class TestLogging:
    """Tests for logging setup."""

    def test_namespace(self) -> None:
        """Test loggers live under the package namespace."""
        assert get_logger("sms_ledger.cli").name == "sms_ledger.cli"
        assert get_logger("helpers").name == "sms_ledger.helpers"

    def test_file_handler(self, tmp_path: Path) -> None:
        """Test the log file is created and written."""
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logging(level="INFO", log_file=str(log_file), console_output=False)

        get_logger("tests").info("hello")
        for handler in logger.handlers:
            handler.flush()

        assert "sms_ledger.tests - INFO - hello" in log_file.read_text(encoding="utf-8")
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_log_context_masks_sensitive_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test LogContext never logs sensitive values."""
        logger = get_logger("tests.context")
        logger.setLevel(logging.DEBUG)

        with caplog.at_level(logging.DEBUG, logger="sms_ledger.tests.context"):
            with LogContext(logger, "sync", user_id="u-secret", source="personal"):
                pass

        assert "u-secret" not in caplog.text
        assert "source=personal" in caplog.text

    def test_log_context_logs_failure_and_reraises(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a failing run is logged with its duration and not swallowed."""
        logger = get_logger("tests.failure")

        with caplog.at_level(logging.DEBUG, logger="sms_ledger.tests.failure"):
            with pytest.raises(RuntimeError):
                with LogContext(logger, "sync", user_id="u1"):
                    raise RuntimeError("backup vanished")

        assert "sync failed after" in caplog.text
        assert "RuntimeError: backup vanished" in caplog.text
