# File: pickup_scheduler/processors/task_processor.py
"""
Task processor: consumes pending statuses and performs their calendar
side effects.

Records are visited in store order. Each pending record either reaches its
completion status or is forced to Error with a notification; one failing
record never stops the run.
"""

import datetime
from typing import Callable, Iterable, List, Optional

from pickup_scheduler.core.config_manager import Config
from pickup_scheduler.core.exceptions import (
    AssigneeNotFoundError, DuplicateRegistrationError, MissingFieldError, RequestValidationError
)
from pickup_scheduler.models import NotificationKind, ProcessSummary, Record, RecordField, Status, UpdateSource
from pickup_scheduler.processors.event_builder import build_event_body, build_patch_body, build_title
from pickup_scheduler.processors.status_machine import missing_registration_fields, passes_availability
from pickup_scheduler.processors.transfer import AssigneeTransfer
from pickup_scheduler.services.assignee_directory import AssigneeDirectory
from pickup_scheduler.services.calendar_service import GoogleCalendarService
from pickup_scheduler.services.notification_service import ChatNotifier, build_error_notification
from pickup_scheduler.services.record_store import RecordStore
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

OPERATION_NAMES = {
    Status.CALENDAR_REGISTER: "Calendar registration",
    Status.RESYNC_REGISTER: "Calendar refresh",
    Status.CANCEL_REGISTER: "Cancellation",
    Status.ASSIGNEE_CHANGE_REGISTER: "Assignee change",
}


class TaskProcessor:
    """Advances pending records, at most `max_process` per invocation."""

    def __init__(
        self,
        calendar: GoogleCalendarService,
        directory: AssigneeDirectory,
        notifier: ChatNotifier,
        transfer: AssigneeTransfer,
        tz_name: str = Config.TARGET_TIMEZONE,
        max_process: int = Config.MAX_PROCESS_PER_RUN,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now
    ):
        self.calendar = calendar
        self.directory = directory
        self.notifier = notifier
        self.transfer = transfer
        self.tz_name = tz_name
        self.max_process = max_process
        self.clock = clock
        self.handlers = {
            Status.CALENDAR_REGISTER: self._register,
            Status.RESYNC_REGISTER: self._resync,
            Status.CANCEL_REGISTER: self._cancel,
            Status.ASSIGNEE_CHANGE_REGISTER: self._change_assignee,
        }

    def run(self, stores: Iterable[RecordStore]) -> ProcessSummary:
        """
        Process pending records across stores, sharing one budget.

        Returns:
            ProcessSummary with counts; failed records count toward the budget
        """
        summary = ProcessSummary()
        for store in stores:
            if summary.limit_reached:
                break
            self._run_store(store, summary)

        logger.info(
            f"Task processing done: {summary.processed} processed, "
            f"{summary.succeeded} succeeded, {summary.failed} failed"
            + (" (limit reached)" if summary.limit_reached else "")
        )
        return summary

    def _run_store(self, store: RecordStore, summary: ProcessSummary) -> None:
        for record in store.records():
            if not record.is_pending:
                continue
            if summary.processed >= self.max_process:
                logger.info(f"Processing limit ({self.max_process}) reached, the rest waits for the next run")
                summary.limit_reached = True
                return

            summary.processed += 1
            if self.process_record(store, record, summary.errors):
                summary.succeeded += 1
            else:
                summary.failed += 1

    def process_record(self, store: RecordStore, record: Record, errors: Optional[List[str]] = None) -> bool:
        """
        Run the side effect for one pending record.

        Returns:
            True on success; False if the record was moved to Error
        """
        status = record.status
        handler = self.handlers.get(status)
        if handler is None:
            return True

        logger.info(f"{store.name} row {record.row}: {status.value} -> processing")
        try:
            handler(store, record)
        except Exception as e:
            logger.error(f"{store.name} row {record.row}: {OPERATION_NAMES[status]} failed: {e}", exc_info=True)
            self._fail(store, record, status, e)
            if errors is not None:
                errors.append(f"{store.name} row {record.row}: {e}")
            return False
        return True

    def _fail(self, store: RecordStore, record: Record, status: Status, error: Exception) -> None:
        try:
            store.update_record(
                record.row, {RecordField.STATUS: Status.ERROR}, source=UpdateSource.RECORD, at=self.clock()
            )
        except Exception as e:
            logger.error(f"{store.name} row {record.row}: could not write Error status: {e}", exc_info=True)
        self.notifier.notify(
            NotificationKind.ERROR,
            build_error_notification(record, OPERATION_NAMES[status], str(error)),
            store.channel,
        )

    # ---- handlers ----

    def _register(self, store: RecordStore, record: Record) -> None:
        # Re-read: the row may have drifted since the scan
        if store.read_live_field(record.row, RecordField.EVENT_ID):
            raise DuplicateRegistrationError("A calendar event has already been created for this row")

        missing = missing_registration_fields(record)
        if missing:
            raise MissingFieldError(*missing)
        if store.target.check_availability and not passes_availability(record):
            raise RequestValidationError("The scheduled date falls on a day the customer is closed")

        calendar_id = self.directory.resolve_assignee_calendar_id(record.assignee)
        if not calendar_id:
            raise AssigneeNotFoundError(record.assignee)

        body = build_event_body(record, calendar_id, self.tz_name, store.target.sheet_type)
        created = self.calendar.insert_event(calendar_id, body)

        store.update_record(
            record.row,
            {
                RecordField.STATUS: Status.CALENDAR_COMPLETE,
                RecordField.CALENDAR_ID: calendar_id,
                RecordField.EVENT_ID: created.event_id,
            },
            source=UpdateSource.RECORD,
            at=self.clock(),
        )
        logger.info(f"{store.name} row {record.row}: registered as {created.event_id} on {calendar_id}")
        self.notifier.notify(
            NotificationKind.CALENDAR_REGISTERED,
            f"{build_title(record, store.target.sheet_type)}\n"
            f"Event ID: {created.event_id}\n"
            f"{record.detail(RecordField.ROW_URL)}",
            store.channel,
        )

    def _resync(self, store: RecordStore, record: Record) -> None:
        if not record.event_id:
            raise MissingFieldError(RecordField.EVENT_ID.value)
        if not record.calendar_id:
            raise MissingFieldError(RecordField.CALENDAR_ID.value)

        self.calendar.patch_event(record.calendar_id, record.event_id, build_patch_body(record, self.tz_name))
        store.update_record(
            record.row, {RecordField.STATUS: Status.RESYNC_COMPLETE}, source=UpdateSource.RECORD, at=self.clock()
        )
        logger.info(f"{store.name} row {record.row}: calendar event refreshed")

    def _cancel(self, store: RecordStore, record: Record) -> None:
        updates = {
            RecordField.STATUS: Status.CANCEL_COMPLETE,
            RecordField.CALENDAR_ID: '',
            RecordField.EVENT_ID: '',
        }
        now = self.clock()
        if record.event_id:
            if not record.calendar_id:
                raise MissingFieldError(RecordField.CALENDAR_ID.value)
            self.calendar.delete_event(record.calendar_id, record.event_id)
            updates[RecordField.DELETED_AT] = now
            updates[RecordField.DELETED_BY] = UpdateSource.RECORD

        store.update_record(record.row, updates, source=UpdateSource.RECORD, at=now)
        logger.info(f"{store.name} row {record.row}: cancelled")
        self.notifier.notify(
            NotificationKind.CANCELLED,
            f"{build_title(record, store.target.sheet_type)}\n"
            f"Request ID: {record.record_id}\n"
            f"{record.detail(RecordField.ROW_URL)}",
            store.channel,
        )

    def _change_assignee(self, store: RecordStore, record: Record) -> None:
        self.transfer.transfer_for_record(store, record)
        store.update_record(
            record.row, {RecordField.STATUS: Status.RESYNC_COMPLETE}, source=UpdateSource.RECORD, at=self.clock()
        )
        logger.info(f"{store.name} row {record.row}: assignee change done")
