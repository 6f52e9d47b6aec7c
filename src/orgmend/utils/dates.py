"""Date arguments given on the command line or in batch JSON."""

from datetime import datetime

from org_outline.errors import InvalidArgsError
from org_outline.model import Timestamp, TimestampType
from org_outline.parsers import parse_timestamp_range


def parse_date_argument(value: str) -> Timestamp:
    """
    Parse a user-supplied date into an active timestamp.

    Accepts either a plain "YYYY-MM-DD" date or a complete org timestamp
    such as "<2026-02-01 Sun 10:00 +1w>" (repeaters and ranges kept).

    Raises:
        InvalidArgsError: If the value is neither
    """
    text = value.strip()
    if text.startswith(("<", "[")):
        ts = parse_timestamp_range(text)
        if ts is None:
            raise InvalidArgsError(f"Invalid timestamp: {value}", detail=value)
        return ts

    try:
        day = datetime.strptime(text, "%Y-%m-%d")
    except ValueError as e:
        raise InvalidArgsError(f"Invalid date format: {value}. Expected: YYYY-MM-DD", detail=value) from e
    return Timestamp(type=TimestampType.ACTIVE, date=day)
