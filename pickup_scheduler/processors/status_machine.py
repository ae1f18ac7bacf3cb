# File: pickup_scheduler/processors/status_machine.py
"""
Record status state machine.

Pending states are written by a human request (or an edit hook) and are
consumed by the task processor; every other state is quiescent. This module
holds the request-time transitions; the processor owns the transitions that
carry a calendar side effect.
"""

import datetime
import re
from typing import List, Optional, Set

from pickup_scheduler.core.exceptions import RequestValidationError
from pickup_scheduler.models import (
    Record, RecordField, Status, UpdateSource, PENDING_STATES, CANCELLED_STATES
)
from pickup_scheduler.services.record_store import RecordStore
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

QUIESCENT_STATES = frozenset(Status) - PENDING_STATES

WEEKDAY_NAMES = {
    'monday': 0, 'mon': 0,
    'tuesday': 1, 'tue': 1, 'tues': 1,
    'wednesday': 2, 'wed': 2,
    'thursday': 3, 'thu': 3, 'thur': 3, 'thurs': 3,
    'friday': 4, 'fri': 4,
    'saturday': 5, 'sat': 5,
    'sunday': 6, 'sun': 6,
}
WEEKDAY_SEPARATORS = re.compile(r"[,、，/・;\s]+")


def parse_weekday_list(text: str) -> Set[int]:
    """
    Weekday numbers (Monday=0) named in a free-text cell.

    Unknown tokens are ignored.

    Example:
        >>> sorted(parse_weekday_list("Sunday, Wed / sat"))
        [2, 5, 6]
    """
    days = set()
    for token in WEEKDAY_SEPARATORS.split(text or ''):
        day = WEEKDAY_NAMES.get(token.strip().lower().rstrip('.'))
        if day is not None:
            days.add(day)
    return days


def passes_availability(record: Record) -> bool:
    """False when the scheduled date falls on a day the customer is closed."""
    if not record.scheduled_date:
        return True
    closed_text = ', '.join(
        record.detail(f) for f in (RecordField.CLOSED_DAYS, RecordField.MORNING_CLOSED, RecordField.AFTERNOON_CLOSED)
        if record.detail(f)
    )
    return record.scheduled_date.weekday() not in parse_weekday_list(closed_text)


def missing_registration_fields(record: Record) -> List[str]:
    """Headers of required-for-registration fields that are empty."""
    required = [
        (RecordField.DATE, record.scheduled_date),
        (RecordField.START, record.start_time),
        (RecordField.END, record.end_time),
        (RecordField.ASSIGNEE, record.assignee),
        (RecordField.AREA, record.area),
    ]
    return [f.value for f, value in required if not value]


def request_register(store: RecordStore, row: int, at: Optional[datetime.datetime] = None) -> Record:
    """
    Queue a record for calendar registration.

    Raises:
        RequestValidationError: required fields missing, closed day, or
            already registered. Nothing is written in that case.
    """
    record = store.get_record(row)

    missing = missing_registration_fields(record)
    if missing:
        raise RequestValidationError(f"Required field(s) missing: {', '.join(missing)}")
    if store.target.check_availability and not passes_availability(record):
        raise RequestValidationError(
            "The scheduled date falls on a day the customer is closed; registration is not possible."
        )
    if record.is_registered:
        raise RequestValidationError(
            "Already registered on the calendar. Request a refresh to update the event instead."
        )

    store.update_record(row, {RecordField.STATUS: Status.CALENDAR_REGISTER}, source=UpdateSource.RECORD, at=at)
    logger.info(f"{store.name} row {row}: registration queued")
    record.status = Status.CALENDAR_REGISTER
    return record


def request_refresh(store: RecordStore, row: int, at: Optional[datetime.datetime] = None) -> bool:
    """
    Queue a calendar refresh for a registered record.

    Returns:
        True if queued, False if the record is not on the calendar
    """
    record = store.get_record(row)
    if not record.is_registered:
        logger.info(f"{store.name} row {row}: not registered, nothing to refresh")
        return False
    store.update_record(row, {RecordField.STATUS: Status.RESYNC_REGISTER}, source=UpdateSource.RECORD, at=at)
    logger.info(f"{store.name} row {row}: refresh queued")
    return True


def request_cancel(store: RecordStore, row: int, at: Optional[datetime.datetime] = None) -> Status:
    """
    Queue a cancellation, or cancel directly when there is no event.

    Returns:
        The status the record now has
    """
    record = store.get_record(row)
    if not record.is_registered:
        if record.status != Status.CANCEL_COMPLETE:
            store.update_record(row, {RecordField.STATUS: Status.CANCEL_COMPLETE}, source=UpdateSource.RECORD, at=at)
        logger.info(f"{store.name} row {row}: no calendar event, marked cancelled")
        return Status.CANCEL_COMPLETE

    store.update_record(row, {RecordField.STATUS: Status.CANCEL_REGISTER}, source=UpdateSource.RECORD, at=at)
    logger.info(f"{store.name} row {row}: cancellation queued")
    return Status.CANCEL_REGISTER


def request_hold(store: RecordStore, row: int, at: Optional[datetime.datetime] = None) -> None:
    """Park a record; the processor ignores it until another request."""
    store.update_record(row, {RecordField.STATUS: Status.HOLD}, source=UpdateSource.RECORD, at=at)
    logger.info(f"{store.name} row {row}: put on hold")


def on_assignee_edited(store: RecordStore, row: int, at: Optional[datetime.datetime] = None) -> bool:
    """
    Edit hook for the Assignee column.

    Returns:
        True if a transfer was queued (only registered records move)
    """
    record = store.get_record(row)
    if not record.is_registered or record.status in CANCELLED_STATES:
        return False
    store.update_record(row, {RecordField.STATUS: Status.ASSIGNEE_CHANGE_REGISTER}, source=UpdateSource.RECORD, at=at)
    logger.info(f"{store.name} row {row}: assignee change queued")
    return True
