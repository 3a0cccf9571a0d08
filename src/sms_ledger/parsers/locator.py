"""Backup discovery in a local profile folder."""

from fnmatch import fnmatch
from pathlib import Path

from sms_ledger.parsers.base import BackupBatch, BackupSource, BackupSourceError
from sms_ledger.parsers.xml_backup import DEFAULT_MAX_FILE_SIZE, SMSBackupParser
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_FILE_PATTERN = "sms-*.xml"


class BackupLocator:
    """Finds backup files in a folder.

    Backup apps name files after the backup time ("sms-20240610123000.xml"),
    so the newest backup is the last one in name order.
    """

    def __init__(self, file_pattern: str = DEFAULT_FILE_PATTERN):
        """Initialize locator.

        Args:
            file_pattern: Glob pattern backup file names must match.
        """
        self.file_pattern = file_pattern

    def discover_files(self, directory: Path) -> list[Path]:
        """Discover backup files directly inside a directory.

        Args:
            directory: Folder to search.

        Returns:
            Matching files, newest (by name) first.
        """
        if not directory.exists() or not directory.is_dir():
            logger.warning(f"Directory not found or not a directory: {directory}")
            return []

        files: list[Path] = []
        resolved_directory = directory.resolve()

        for file_path in directory.iterdir():
            if not file_path.is_file() or not fnmatch(file_path.name.lower(), self.file_pattern.lower()):
                continue
            # Symlinks must not lead outside the folder
            try:
                file_path.resolve().relative_to(resolved_directory)
            except ValueError:
                logger.warning(
                    f"Skipping file outside target directory (symlink traversal): {file_path}"
                )
                continue
            except OSError as e:
                logger.warning(f"Skipping file with invalid path: {file_path}: {e}")
                continue
            files.append(file_path)

        files.sort(key=lambda p: p.name.lower(), reverse=True)

        logger.info(f"Discovered {len(files)} backup files in {directory}")
        return files

    def latest(self, directory: Path) -> Path | None:
        """Return the newest backup in a directory, or None."""
        files = self.discover_files(directory)
        return files[0] if files else None


class LocalBackupSource(BackupSource):
    """Reads the newest backup from a local profile folder."""

    def __init__(
        self,
        directory: Path,
        file_pattern: str = DEFAULT_FILE_PATTERN,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        """Initialize source.

        Args:
            directory: Folder holding the profile's backups.
            file_pattern: Glob pattern for backup file names.
            max_file_size: Largest accepted file, in bytes.
        """
        self.directory = directory
        self.locator = BackupLocator(file_pattern)
        self.parser = SMSBackupParser(max_file_size)

    def fetch(self) -> BackupBatch:
        """Parse the newest backup in the folder.

        Returns:
            The parsed backup.

        Raises:
            BackupSourceError: If there is no backup or it cannot be read.
        """
        if not self.directory.is_dir():
            raise BackupSourceError(
                f"Backup folder not found: {self.directory}", str(self.directory)
            )

        latest = self.locator.latest(self.directory)
        if latest is None:
            raise BackupSourceError(
                f"No backup matching '{self.locator.file_pattern}' in {self.directory}",
                str(self.directory),
            )

        logger.info(f"Using backup {latest.name}")
        try:
            return self.parser.parse(latest)
        except OSError as e:
            raise BackupSourceError(f"Cannot read backup {latest}: {e}", str(latest)) from e
