"""Timestamp parsing and formatting utilities.

Backup files store message timestamps as epoch milliseconds encoded as
strings. Everything downstream works with timezone-aware UTC datetimes.
"""

from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_epoch_millis(raw_timestamp: str) -> datetime:
    """Parse a string-encoded epoch-millisecond timestamp.

    Integer arithmetic is used so that the millisecond value survives
    the round trip exactly.

    Args:
        raw_timestamp: Timestamp string such as "1718000000123".

    Returns:
        Timezone-aware UTC datetime.

    Raises:
        ValueError: If the value is empty, non-numeric or negative.
    """
    if not raw_timestamp:
        raise ValueError("Empty timestamp string")

    value = raw_timestamp.strip()
    if not value.isdigit():
        raise ValueError(f"Cannot parse timestamp: '{raw_timestamp}'")

    try:
        return EPOCH + timedelta(milliseconds=int(value))
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: '{raw_timestamp}'") from e


def to_iso(moment: datetime) -> str:
    """Format a datetime as ISO 8601 with millisecond precision.

    Args:
        moment: Datetime to format.

    Returns:
        String like "2024-06-10T06:13:20.123+00:00".
    """
    return moment.isoformat(timespec="milliseconds")
