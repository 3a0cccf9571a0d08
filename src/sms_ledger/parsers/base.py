"""Backup source interface and source errors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from sms_ledger.models.message import RawMessage


class BackupSourceError(Exception):
    """Raised when messages cannot be fetched from a backup source.

    Fatal for the whole batch: nothing is classified or written.
    """

    def __init__(self, message: str, location: Optional[str] = None):
        """Initialize BackupSourceError.

        Args:
            message: Error message.
            location: Optional file path or remote folder that failed.
        """
        self.location = location
        super().__init__(message)


class ReauthenticationRequiredError(BackupSourceError):
    """Raised when the source's credentials expired or were revoked.

    Callers must send the user through sign-in again instead of retrying.
    """

    pass


class ParseError(BackupSourceError):
    """Raised when a backup file as a whole cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[Path] = None):
        """Initialize ParseError.

        Args:
            message: Error message.
            file_path: Optional path to the file that failed to parse.
        """
        self.file_path = file_path
        super().__init__(message, str(file_path) if file_path else None)


@dataclass
class BackupBatch:
    """Messages fetched from one backup file.

    Attributes:
        name: Backup file name (e.g. "sms-20240610123000.xml").
        messages: Messages in file order.
        skipped: Elements skipped for missing body or timestamp.
    """

    name: str
    messages: list[RawMessage] = field(default_factory=list)
    skipped: int = 0


class BackupSource(ABC):
    """Abstract source of message backups for one profile.

    Subclasses must implement fetch(). Implementations raise
    ReauthenticationRequiredError for credential problems and
    BackupSourceError for every other fetch failure.
    """

    @property
    def name(self) -> str:
        """Return source name for logging."""
        return self.__class__.__name__

    @abstractmethod
    def fetch(self) -> BackupBatch:
        """Fetch the latest backup.

        Returns:
            The parsed backup.

        Raises:
            ReauthenticationRequiredError: If credentials are no longer valid.
            BackupSourceError: If the backup cannot be fetched or read.
        """
        pass
