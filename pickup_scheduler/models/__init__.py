from .enums import Status, UpdateSource, SheetType, NotificationKind, MarkerOutcome, PENDING_STATES, CANCELLED_STATES
from .common import nz, parse_iso_datetime, parse_sheet_date, parse_sheet_time, normalize_event_id, event_key
from .record import Record, RecordField, record_from_row
from .calendar import CalendarEvent, EventPage, event_time_body
from .config import SheetTarget, SyncLimits, NotifierSettings
from .results import MarkerResult, ProcessSummary, SyncSummary

__all__ = [
    "Status",
    "UpdateSource",
    "SheetType",
    "NotificationKind",
    "MarkerOutcome",
    "PENDING_STATES",
    "CANCELLED_STATES",
    "nz",
    "parse_iso_datetime",
    "parse_sheet_date",
    "parse_sheet_time",
    "normalize_event_id",
    "event_key",
    "Record",
    "RecordField",
    "record_from_row",
    "CalendarEvent",
    "EventPage",
    "event_time_body",
    "SheetTarget",
    "SyncLimits",
    "NotifierSettings",
    "MarkerResult",
    "ProcessSummary",
    "SyncSummary",
]
