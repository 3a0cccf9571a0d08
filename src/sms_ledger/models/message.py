"""Raw message model for notification backups."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RawMessage:
    """A notification as read from a backup, before any processing.

    Attributes:
        body: Free-text message body exactly as stored in the backup.
        timestamp_millis: Epoch-millisecond receive time, string-encoded.
        address: Sender address (e.g. "VM-HDFCBK"), when the backup has one.
    """

    body: str
    timestamp_millis: str
    address: str | None = None

    @property
    def is_complete(self) -> bool:
        """Whether both body and timestamp are present and non-blank."""
        return bool(self.body and self.body.strip()) and bool(
            self.timestamp_millis and self.timestamp_millis.strip()
        )
