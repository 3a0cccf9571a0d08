"""Parser for SMS Backup & Restore XML files.

The format is a flat list of elements:

    <smses count="2">
      <sms address="VM-HDFCBK" date="1718000000123" type="1" body="..." />
      ...
    </smses>

Only ``body`` and ``date`` (epoch milliseconds) are required.
"""

import io
import re
from pathlib import Path

from lxml import etree

from sms_ledger.models.message import RawMessage
from sms_ledger.parsers.base import BackupBatch, ParseError
from sms_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Backups of several years run to hundreds of MB; refuse anything larger
DEFAULT_MAX_FILE_SIZE = 512 * 1024 * 1024

# DOCTYPE declarations are removed before parsing (XXE protection)
_DOCTYPE_PATTERN = re.compile(rb"<!DOCTYPE[^>\[]*(?:\[.*?\])?\s*>", re.IGNORECASE | re.DOTALL)

MESSAGE_TAG = "sms"


class SMSBackupParser:
    """Parses SMS backup XML into raw messages."""

    def __init__(self, max_file_size: int = DEFAULT_MAX_FILE_SIZE):
        """Initialize parser.

        Args:
            max_file_size: Largest accepted file, in bytes.
        """
        self.max_file_size = max_file_size

    def can_parse(self, file_path: Path) -> bool:
        """Check if the file looks like an SMS backup.

        Args:
            file_path: Path to the file.

        Returns:
            True for .xml files whose head mentions an <smses> root.
        """
        if file_path.suffix.lower() != ".xml":
            return False
        try:
            with open(file_path, "rb") as f:
                head = f.read(4096)
        except OSError as e:
            logger.warning(f"Could not read {file_path}: {e}")
            return False
        return b"<smses" in head

    def parse(self, file_path: Path) -> BackupBatch:
        """Parse a backup file.

        Args:
            file_path: Path to the XML file.

        Returns:
            BackupBatch named after the file.

        Raises:
            ParseError: If the file is too large or not well-formed XML.
            FileNotFoundError: If the file doesn't exist.
        """
        size = file_path.stat().st_size
        if size > self.max_file_size:
            raise ParseError(
                f"Backup file is {size} bytes, limit is {self.max_file_size}",
                file_path,
            )

        content = file_path.read_bytes()
        try:
            return self.parse_bytes(content, name=file_path.name)
        except ParseError as e:
            raise ParseError(str(e), file_path) from e

    def parse_bytes(self, content: bytes, name: str = "<memory>") -> BackupBatch:
        """Parse backup content already in memory (e.g. downloaded).

        Args:
            content: Raw XML bytes.
            name: Name used for the batch and in errors.

        Returns:
            BackupBatch with every complete message.

        Raises:
            ParseError: If the content is not well-formed XML.
        """
        if len(content) > self.max_file_size:
            raise ParseError(f"Backup '{name}' is {len(content)} bytes, limit is {self.max_file_size}")

        content = _DOCTYPE_PATTERN.sub(b"", content)
        batch = BackupBatch(name=name)

        try:
            for _event, element in etree.iterparse(
                io.BytesIO(content),
                events=("end",),
                tag=MESSAGE_TAG,
                resolve_entities=False,
                no_network=True,
                load_dtd=False,
            ):
                body = element.get("body")
                date = element.get("date")
                if body and date:
                    batch.messages.append(
                        RawMessage(body=body, timestamp_millis=date, address=element.get("address"))
                    )
                else:
                    batch.skipped += 1
                element.clear()
        except etree.XMLSyntaxError as e:
            raise ParseError(f"Backup '{name}' is not valid XML: {e}") from e

        logger.info(
            f"Read {len(batch.messages)} messages from {name} "
            f"({batch.skipped} skipped without body or date)"
        )
        return batch
