# File: pickup_scheduler/processors/event_builder.py
"""
Builds Calendar API event bodies from records.

The description always ends with an empty transfer marker so a person
editing the event on the calendar can request an assignee change.
"""

from typing import Any, Dict, List

from pickup_scheduler.core.exceptions import MissingFieldError
from pickup_scheduler.models import Record, RecordField, SheetType, event_time_body
from pickup_scheduler.processors.transfer import format_marker


def build_title(record: Record, sheet_type: SheetType = SheetType.REGULAR) -> str:
    clinic = record.detail(RecordField.CLINIC) or '(no clinic name)'
    prefix = '' if sheet_type == SheetType.REGULAR else '[Spot] '
    area = f"[{record.area}] " if record.area else ''
    return f"{prefix}{area}{clinic} pickup"


def build_location(record: Record) -> str:
    clinic = record.detail(RecordField.CLINIC)
    parts = []
    if record.detail(RecordField.POSTAL_CODE):
        parts.append(record.detail(RecordField.POSTAL_CODE))
    if record.detail(RecordField.ADDRESS):
        parts.append(record.detail(RecordField.ADDRESS))
    if not parts:
        return clinic
    return f"{clinic} ({' '.join(parts)})" if clinic else ' '.join(parts)


def build_description(record: Record, calendar_id: str = '') -> str:
    f = record.detail
    lines: List[str] = ['== Summary']
    lines.append(f"- Clinic: {f(RecordField.CLINIC)}")
    location = ' '.join(p for p in (f(RecordField.POSTAL_CODE), f(RecordField.ADDRESS)) if p)
    if location:
        lines.append(f"- Address: {location}")
    contact = ' / '.join(p for p in (f(RecordField.CONTACT), f(RecordField.PHONE)) if p)
    if contact:
        lines.append(f"- Contact: {contact}")
    if record.has_schedule():
        lines.append(
            f"- Scheduled: {record.scheduled_date:%Y-%m-%d} "
            f"{record.start_time:%H:%M}-{record.end_time:%H:%M}"
        )
    if f(RecordField.NOTES):
        lines.append(f"- Notes: {f(RecordField.NOTES)}")

    closed = [(label, f(field)) for label, field in (
        ('Closed days', RecordField.CLOSED_DAYS),
        ('Morning closed', RecordField.MORNING_CLOSED),
        ('Afternoon closed', RecordField.AFTERNOON_CLOSED),
    ) if f(field)]
    if closed:
        lines.append('')
        lines.append('== Not available (reference)')
        lines.extend(f"- {label}: {value}" for label, value in closed)

    lines.append('')
    lines.append('== Assignee change')
    lines.append(f"- {format_marker('')}")

    lines.append('')
    lines.append('== Management')
    lines.append(f"- Request ID: {record.record_id}")
    lines.append(f"- Sheet row: {f(RecordField.ROW_URL)}")
    lines.append(f"- Assignee: {record.assignee}")
    lines.append(f"- Calendar ID: {calendar_id or record.calendar_id}")
    return '\n'.join(lines)


def _times(record: Record, tz_name: str) -> Dict[str, Any]:
    if not record.has_schedule():
        raise MissingFieldError(RecordField.DATE.value, RecordField.START.value, RecordField.END.value)
    return {
        'start': event_time_body(record.scheduled_date, record.start_time, tz_name),
        'end': event_time_body(record.scheduled_date, record.end_time, tz_name),
    }


def build_event_body(record: Record, calendar_id: str, tz_name: str,
                     sheet_type: SheetType = SheetType.REGULAR) -> Dict[str, Any]:
    """Full event resource for a new registration."""
    body = {
        'summary': build_title(record, sheet_type),
        'location': build_location(record),
        'description': build_description(record, calendar_id),
        'guestsCanModify': True,
    }
    body.update(_times(record, tz_name))
    return body


def build_patch_body(record: Record, tz_name: str) -> Dict[str, Any]:
    """Time, description and location for a refresh; nothing else is touched."""
    body = {
        'description': build_description(record),
        'location': build_location(record),
    }
    body.update(_times(record, tz_name))
    return body
