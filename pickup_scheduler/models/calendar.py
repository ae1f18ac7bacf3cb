# File: pickup_scheduler/models/calendar.py

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

import pytz

from .common import parse_iso_datetime, normalize_event_id


@dataclass
class CalendarEvent:
    """A Google Calendar event as seen by the sync engine."""
    event_id: str
    calendar_id: str
    summary: str = ''
    location: str = ''
    description: str = ''
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    all_day_date: Optional[date] = None
    status: str = 'confirmed'
    updated: Optional[datetime] = None
    guests_can_modify: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate event data."""
        self.event_id = normalize_event_id(self.event_id)
        if self.start and self.end and self.end < self.start:
            raise ValueError(f"Event end time must not be before start time: {self.summary}")

    @property
    def is_cancelled(self) -> bool:
        return self.status == 'cancelled'

    def local_times(self, tz_name: str) -> Dict[str, Any]:
        """
        Date/start/end in the target timezone.

        All-day events only carry a date; start/end are then None.
        """
        if self.all_day_date:
            return {'date': self.all_day_date, 'start': None, 'end': None}
        if not self.start:
            return {'date': None, 'start': None, 'end': None}
        tz = pytz.timezone(tz_name)
        start = _to_zone(self.start, tz)
        end = _to_zone(self.end, tz) if self.end else None
        return {
            'date': start.date(),
            'start': start.time().replace(second=0, microsecond=0),
            'end': end.time().replace(second=0, microsecond=0) if end else None,
        }

    @classmethod
    def from_api(cls, data: Dict[str, Any], calendar_id: str) -> 'CalendarEvent':
        """Create a CalendarEvent from a Calendar API v3 event resource."""
        start_raw = data.get('start') or {}
        end_raw = data.get('end') or {}
        all_day = None
        if start_raw.get('date') and not start_raw.get('dateTime'):
            all_day = datetime.strptime(start_raw['date'], "%Y-%m-%d").date()

        return cls(
            event_id=str(data.get('id', '')),
            calendar_id=calendar_id,
            summary=data.get('summary', ''),
            location=data.get('location', ''),
            description=data.get('description', '') or '',
            start=parse_iso_datetime(start_raw.get('dateTime')),
            end=parse_iso_datetime(end_raw.get('dateTime')),
            all_day_date=all_day,
            status=data.get('status', 'confirmed'),
            updated=parse_iso_datetime(data.get('updated')),
            guests_can_modify=bool(data.get('guestsCanModify', False)),
            raw=data,
        )


@dataclass
class EventPage:
    """One page of an events.list response."""
    items: List[CalendarEvent] = field(default_factory=list)
    next_page_token: Optional[str] = None
    next_sync_token: Optional[str] = None


def _to_zone(value: datetime, tz) -> datetime:
    if value.tzinfo is None:
        return tz.localize(value)
    return value.astimezone(tz)


def event_time_body(day: date, at: time, tz_name: str) -> Dict[str, str]:
    """Calendar API start/end object for a local date and time."""
    local = pytz.timezone(tz_name).localize(datetime.combine(day, at))
    return {'dateTime': local.isoformat(), 'timeZone': tz_name}
