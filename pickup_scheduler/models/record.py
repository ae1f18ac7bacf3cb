# File: pickup_scheduler/models/record.py

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .enums import Status, UpdateSource
from .common import nz, parse_sheet_date, parse_sheet_time, parse_iso_datetime


class RecordField(Enum):
    """Fixed header vocabulary shared by the core and the sheet collaborators."""
    ID = "Request ID"
    STATUS = "Status"
    DATE = "Scheduled Date"
    START = "Start Time"
    END = "End Time"
    ASSIGNEE = "Assignee"
    AREA = "Area"
    CALENDAR_ID = "Calendar ID"
    EVENT_ID = "Calendar Event ID"
    UPDATED_AT = "Last Updated"
    UPDATED_BY = "Last Updated By"
    UPDATE_SOURCE = "Last Update Source"
    DELETED_AT = "Deleted At"
    DELETED_BY = "Deletion Source"
    # Descriptive columns used for the calendar event body
    CLINIC = "Clinic Name"
    POSTAL_CODE = "Postal Code"
    ADDRESS = "Address"
    CONTACT = "Contact Name"
    PHONE = "Phone"
    NOTES = "Notes"
    ROW_URL = "Row URL"
    CLOSED_DAYS = "Closed Days"
    MORNING_CLOSED = "Morning Closed"
    AFTERNOON_CLOSED = "Afternoon Closed"


@dataclass
class Record:
    """One schedulable row of a record sheet."""
    row: int
    record_id: str = ''
    status: Status = Status.UNHANDLED
    scheduled_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    assignee: str = ''
    area: str = ''
    calendar_id: str = ''
    event_id: str = ''
    updated_at: Optional[datetime] = None
    update_source: Optional[UpdateSource] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[UpdateSource] = None
    details: Dict[str, str] = field(default_factory=dict)

    @property
    def is_registered(self) -> bool:
        """True when the row is linked to a calendar event."""
        return bool(self.event_id)

    @property
    def is_pending(self) -> bool:
        return self.status.is_pending

    def detail(self, name: RecordField) -> str:
        return self.details.get(name.value, '')

    def has_schedule(self) -> bool:
        return bool(self.scheduled_date and self.start_time and self.end_time)

    def label(self) -> str:
        """Short human label used in logs and notifications."""
        name = self.detail(RecordField.CLINIC) or '(no clinic name)'
        return f"{self.record_id or f'row {self.row}'} {name}"


def _source(value: Any) -> Optional[UpdateSource]:
    text = nz(value)
    for source in UpdateSource:
        if source.value == text:
            return source
    return None


def record_from_row(row: int, values: Mapping[str, Any]) -> Record:
    """Create a Record from a {header: cell value} mapping."""
    get = lambda f: values.get(f.value, '')
    return Record(
        row=row,
        record_id=nz(get(RecordField.ID)),
        status=Status.parse(get(RecordField.STATUS)),
        scheduled_date=parse_sheet_date(get(RecordField.DATE)),
        start_time=parse_sheet_time(get(RecordField.START)),
        end_time=parse_sheet_time(get(RecordField.END)),
        assignee=nz(get(RecordField.ASSIGNEE)),
        area=nz(get(RecordField.AREA)),
        calendar_id=nz(get(RecordField.CALENDAR_ID)),
        event_id=nz(get(RecordField.EVENT_ID)),
        updated_at=parse_iso_datetime(nz(get(RecordField.UPDATED_AT))),
        update_source=_source(get(RecordField.UPDATE_SOURCE)),
        deleted_at=parse_iso_datetime(nz(get(RecordField.DELETED_AT))),
        deleted_by=_source(get(RecordField.DELETED_BY)),
        details={k: nz(v) for k, v in values.items() if k not in CORE_HEADERS},
    )


DETAIL_FIELDS = (
    RecordField.CLINIC,
    RecordField.POSTAL_CODE,
    RecordField.ADDRESS,
    RecordField.CONTACT,
    RecordField.PHONE,
    RecordField.NOTES,
    RecordField.ROW_URL,
    RecordField.CLOSED_DAYS,
    RecordField.MORNING_CLOSED,
    RecordField.AFTERNOON_CLOSED,
)

CORE_HEADERS = frozenset(f.value for f in RecordField) - frozenset(f.value for f in DETAIL_FIELDS)
