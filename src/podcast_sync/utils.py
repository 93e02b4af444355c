"""
Small helpers shared across the package.
"""

import calendar
import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union

# Sentinel for timestamps that are missing or could not be parsed.
MIN_DATE = datetime.min.replace(tzinfo=timezone.utc)

_UNRESOLVED_MARKERS = (
    "uri not resolved",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "failed to resolve",
    "name resolution",
    "no address associated with hostname",
)


def sanitize_filename(filename: str) -> str:
    """Make a string safe to use as a file or directory name."""
    sanitized = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "_", filename).strip()
    sanitized = re.sub(r"\s+", " ", sanitized).strip(". ")
    return sanitized[:150] or "untitled"


def format_bytes(size: Union[int, float]) -> str:
    """Format a byte count in human readable units."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024.0:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024.0
    return f"{value:.1f} TB"


def struct_time_to_datetime(
    value: Optional[time.struct_time],
) -> Optional[datetime]:
    """Convert a UTC struct_time (as produced by feedparser) to datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)


def parse_date(value: Optional[str]) -> datetime:
    """Parse an RSS/Atom date string.

    Returns MIN_DATE when the value is empty or cannot be parsed.
    """
    if not value or not value.strip():
        return MIN_DATE
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(
                value.strip().replace("Z", "+00:00")
            )
        except ValueError:
            return MIN_DATE
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # Offsets can push dates near year 1 out of range
        return MIN_DATE


def format_date(value: datetime) -> str:
    """Serialize a timestamp to ISO-8601."""
    return value.isoformat()


def load_date(value: Optional[str]) -> datetime:
    """Inverse of format_date; MIN_DATE for missing values."""
    if not value:
        return MIN_DATE
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_unresolved_address_error(error: BaseException) -> bool:
    """Check whether an exception message indicates a DNS failure."""
    message = str(error).lower()
    return any(marker in message for marker in _UNRESOLVED_MARKERS)
