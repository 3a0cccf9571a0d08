"""Backup sources and parsers."""

from sms_ledger.parsers.base import (
    BackupBatch,
    BackupSource,
    BackupSourceError,
    ParseError,
    ReauthenticationRequiredError,
)
from sms_ledger.parsers.locator import BackupLocator, LocalBackupSource
from sms_ledger.parsers.xml_backup import SMSBackupParser

__all__ = [
    "BackupBatch",
    "BackupSource",
    "BackupSourceError",
    "ParseError",
    "ReauthenticationRequiredError",
    "BackupLocator",
    "LocalBackupSource",
    "SMSBackupParser",
]
