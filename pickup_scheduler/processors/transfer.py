# File: pickup_scheduler/processors/transfer.py
"""
Assignee transfer protocol.

An event moves between calendars by copy-then-delete: the copy is inserted
on the destination before the source is deleted, so a failure never leaves
the record without an event. The same protocol serves both directions:

* record-driven: the Assignee cell was edited and the task processor
  consumes AssigneeChangeRegister
* calendar-driven: someone filled the transfer marker in the event
  description and the sync engine found it
"""

import datetime
import re
from typing import Callable, NamedTuple, Optional

from pickup_scheduler.core.exceptions import (
    AssigneeNotFoundError, CalendarServiceError, MissingFieldError, PickupSchedulerError, TransferError
)
from pickup_scheduler.models import (
    CalendarEvent, MarkerOutcome, MarkerResult, NotificationKind, Record, RecordField, Status, UpdateSource
)
from pickup_scheduler.services.assignee_directory import AssigneeDirectory
from pickup_scheduler.services.calendar_service import GoogleCalendarService
from pickup_scheduler.services.notification_service import ChatNotifier
from pickup_scheduler.services.record_store import RecordStore
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

MARKER_LABEL = "Target assignee"
PROCESSED = "processed"
ERROR = "error"

MARKER_PATTERN = re.compile(
    r"Target assignee[:：]\s*«([^»\n]*)»(?:[ \t]*->[ \t]*(processed|error))?"
)
# Whole marker line, whatever follows the label
MARKER_LINE = re.compile(r"Target assignee[:：][^\n]*")


class Marker(NamedTuple):
    name: str
    annotation: Optional[str]

    @property
    def is_pending(self) -> bool:
        """Filled in and not yet handled."""
        return bool(self.name) and self.annotation is None


def format_marker(name: str, annotation: Optional[str] = None) -> str:
    text = f"{MARKER_LABEL}: «{name}»"
    return f"{text} -> {annotation}" if annotation else text


def parse_marker(description: str) -> Optional[Marker]:
    """
    First transfer marker in an event description.

    Example:
        >>> parse_marker("x\\nTarget assignee: «Sato» -> error")
        Marker(name='Sato', annotation='error')
    """
    match = MARKER_PATTERN.search(description or '')
    if not match:
        return None
    return Marker(match.group(1).strip(), match.group(2))


def annotate_marker(description: str, name: str, annotation: str) -> str:
    """Replace the marker line with an annotated one naming `name`."""
    replacement = format_marker(name, annotation)
    if MARKER_LINE.search(description or ''):
        return MARKER_LINE.sub(lambda _: replacement, description, count=1)
    return description or ''


class AssigneeTransfer:
    """Moves a record's calendar event to another assignee's calendar."""

    def __init__(
        self,
        calendar: GoogleCalendarService,
        directory: AssigneeDirectory,
        notifier: ChatNotifier,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now
    ):
        self.calendar = calendar
        self.directory = directory
        self.notifier = notifier
        self.clock = clock

    def move_event(self, from_calendar: str, event_id: str, to_calendar: str, target_name: str) -> CalendarEvent:
        """
        Copy an event to `to_calendar`, then delete the original.

        Raises:
            TransferError: any step failed. If the delete failed the copy
                exists on both calendars.
        """
        try:
            source = self.calendar.get_event(from_calendar, event_id)
        except CalendarServiceError as e:
            raise TransferError(f"Could not read event {event_id} on {from_calendar}: {e}") from e

        body = {
            'summary': source.summary,
            'description': annotate_marker(source.description, target_name, PROCESSED),
            'location': source.location,
            'start': source.raw.get('start'),
            'end': source.raw.get('end'),
            'guestsCanModify': True,
        }
        try:
            created = self.calendar.insert_event(to_calendar, body)
        except CalendarServiceError as e:
            raise TransferError(f"Could not copy event {event_id} to {to_calendar}: {e}") from e

        try:
            self.calendar.delete_event(from_calendar, event_id)
        except CalendarServiceError as e:
            raise TransferError(
                f"Event copied to {to_calendar} as {created.event_id} but the original "
                f"{event_id} could not be deleted from {from_calendar}: {e}"
            ) from e

        logger.info(f"Moved event {event_id} from {from_calendar} to {to_calendar} as {created.event_id}")
        return created

    def transfer(
        self,
        store: RecordStore,
        record: Record,
        from_calendar: str,
        event_id: str,
        to_calendar: str,
        target_name: str
    ) -> CalendarEvent:
        """Move the event and persist the new calendar/event pair on the record."""
        created = self.move_event(from_calendar, event_id, to_calendar, target_name)
        store.update_record(
            record.row,
            {RecordField.CALENDAR_ID: to_calendar, RecordField.EVENT_ID: created.event_id},
            source=UpdateSource.CALENDAR,
            at=self.clock(),
        )
        record.calendar_id = to_calendar
        record.event_id = created.event_id
        return created

    def transfer_for_record(self, store: RecordStore, record: Record) -> Optional[CalendarEvent]:
        """
        Record-driven transfer to the calendar of the record's Assignee.

        Returns:
            The new event, or None when there was nothing to move (no event,
            no assignee, or already on the assignee's calendar)

        Raises:
            AssigneeNotFoundError: the assignee has no calendar
            MissingFieldError: the record has an event but no calendar id
            TransferError: the move failed
        """
        if not record.event_id or not record.assignee:
            return None

        to_calendar = self.directory.resolve_assignee_calendar_id(record.assignee)
        if not to_calendar:
            raise AssigneeNotFoundError(record.assignee)
        if not record.calendar_id:
            raise MissingFieldError(RecordField.CALENDAR_ID.value)
        if record.calendar_id.lower() == to_calendar.lower():
            logger.info(f"{store.name} row {record.row}: already on {to_calendar}, nothing to move")
            return None

        return self.transfer(store, record, record.calendar_id, record.event_id, to_calendar, record.assignee)

    def handle_calendar_marker(
        self,
        store: RecordStore,
        record: Record,
        event: CalendarEvent,
        calendar_id: str
    ) -> MarkerResult:
        """
        Act on a filled-in transfer marker of an event seen by the sync.

        Never raises; failures come back in the result and the marker is
        annotated as error so the event is not retried every run.
        """
        marker = parse_marker(event.description)
        if marker is None or not marker.is_pending:
            return MarkerResult()

        name = marker.name
        to_calendar = self.directory.resolve_assignee_calendar_id(name)
        if not to_calendar:
            logger.warning(f"{store.name} row {record.row}: transfer marker names unknown assignee '{name}'")
            return MarkerResult(
                outcome=MarkerOutcome.UNRESOLVED,
                assignee_name=name,
                error=str(AssigneeNotFoundError(name)),
                annotation_error=self._annotate(event, calendar_id, name, ERROR),
            )

        if to_calendar.lower() == calendar_id.lower():
            return MarkerResult(
                outcome=MarkerOutcome.ALREADY_PROCESSED,
                assignee_name=name,
                annotation_error=self._annotate(event, calendar_id, name, PROCESSED),
            )

        try:
            created = self.transfer(store, record, calendar_id, event.event_id, to_calendar, name)
            store.update_record(
                record.row,
                {RecordField.ASSIGNEE: name, RecordField.STATUS: Status.ASSIGNEE_CHANGED_FROM_CALENDAR},
                source=UpdateSource.CALENDAR,
                at=self.clock(),
            )
        except PickupSchedulerError as e:
            logger.error(f"{store.name} row {record.row}: calendar-driven transfer failed: {e}")
            return MarkerResult(
                outcome=MarkerOutcome.FAILED,
                assignee_name=name,
                error=str(e),
                annotation_error=self._annotate(event, calendar_id, name, ERROR),
            )

        record.assignee = name
        record.status = Status.ASSIGNEE_CHANGED_FROM_CALENDAR
        self.notifier.notify(
            NotificationKind.ASSIGNEE_CHANGED_FROM_CALENDAR,
            "The assignee was changed from the calendar\n"
            f"New assignee: {name}\n"
            f"Row: {record.detail(RecordField.ROW_URL) or f'row {record.row}'}",
            store.channel,
        )
        return MarkerResult(
            outcome=MarkerOutcome.TRANSFERRED,
            assignee_name=name,
            new_calendar_id=to_calendar,
            new_event_id=created.event_id,
        )

    def _annotate(self, event: CalendarEvent, calendar_id: str, name: str, annotation: str) -> Optional[str]:
        """Patch the marker annotation; returns the error text on failure."""
        try:
            self.calendar.patch_event(
                calendar_id,
                event.event_id,
                {'description': annotate_marker(event.description, name, annotation)},
            )
        except Exception as e:
            logger.error(f"Could not annotate transfer marker on {event.event_id}: {e}")
            return str(e)
        return None
