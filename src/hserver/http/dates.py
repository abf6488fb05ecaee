"""
HTTP-date helpers (RFC 7231 IMF-fixdate).

    Wed, 01 Jan 2026 12:00:00 GMT

Used for the Date header, Last-Modified and conditional requests. Dates on
the wire are always GMT.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(value: Union[datetime, float, None] = None) -> str:
    """
    Format a datetime (or POSIX timestamp) as an HTTP-date.

    Naive datetimes are taken to be UTC; ``None`` means now.
    """
    if value is None:
        dt = datetime.now(timezone.utc)
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    elif value.tzinfo is None:
        dt = value.replace(tzinfo=timezone.utc)
    else:
        dt = value.astimezone(timezone.utc)

    return (
        f"{_DAYS[dt.weekday()]}, {dt.day:02d} {_MONTHS[dt.month - 1]} "
        f"{dt.year:04d} {dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an HTTP-date into an aware UTC datetime (None when invalid)."""
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
