# File: pickup_scheduler/models/common.py

import re
from enum import Enum
from datetime import date, datetime, time
from typing import Any, Optional

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d-%m-%Y", "%d/%m/%Y", "%Y.%m.%d", "%d.%m.%Y")
TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})")
EVENT_ID_SUFFIX = re.compile(r"@google\.com$", re.IGNORECASE)


def nz(value: Any) -> str:
    """None-safe, whitespace-trimmed string."""
    return '' if value is None else str(value).strip()


def parse_iso_datetime(date_str: Optional[str]) -> Optional[datetime]:
    """Robustly parse ISO date strings with 'Z' or offsets."""
    if not date_str:
        return None
    try:
        clean_str = date_str.replace('Z', '+00:00')
        return datetime.fromisoformat(clean_str)
    except ValueError:
        try:
            return datetime.strptime(date_str, "%Y-%m-%d")
        except ValueError:
            return None


def parse_sheet_date(value: Any) -> Optional[date]:
    """Parse a date cell (already-typed values pass through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = nz(value)
    if not text:
        return None
    # "2025-06-10 00:00:00" style cells
    text = text.split(' ')[0].split('T')[0]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_sheet_time(value: Any) -> Optional[time]:
    """Parse an "H:MM" / "HH:MM[:SS]" time cell."""
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value
    match = TIME_PATTERN.search(nz(value))
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def format_cell(value: Any) -> Any:
    """Render typed values the way the sheet stores them."""
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, Enum):
        return value.value
    return value


def normalize_event_id(event_id: Any) -> str:
    """Strip the '@google.com' iCal suffix."""
    return EVENT_ID_SUFFIX.sub('', nz(event_id))


def event_key(event_id: Any) -> str:
    """Case-insensitive matching key for an event id."""
    return normalize_event_id(event_id).lower()
