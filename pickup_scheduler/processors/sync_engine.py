# File: pickup_scheduler/processors/sync_engine.py
"""
Calendar -> record sync engine.

Pulls incremental changes for every calendar referenced by the records,
using a persisted sync token per calendar, and reconciles each event into
the record it is linked to. Events that match no record are ignored.
"""

import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytz

from pickup_scheduler.core.config_manager import Config
from pickup_scheduler.core.exceptions import SyncTokenExpiredError
from pickup_scheduler.core.state_store import PropertyStore
from pickup_scheduler.models import (
    CalendarEvent, MarkerOutcome, MarkerResult, RecordField, Status, SyncLimits, SyncSummary, UpdateSource,
    event_key
)
from pickup_scheduler.processors.transfer import AssigneeTransfer
from pickup_scheduler.services.assignee_directory import AssigneeDirectory
from pickup_scheduler.services.calendar_service import GoogleCalendarService
from pickup_scheduler.services.record_store import RecordStore
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

IndexEntry = Tuple[RecordStore, int]


class RecordIndex:
    """
    (calendar id, event id) -> (store, row) over every record store.

    Rows without a calendar id are also reachable under an empty calendar
    id, so an event still matches a row whose calendar id was lost.
    """

    def __init__(self):
        self._entries: Dict[Tuple[str, str], IndexEntry] = {}
        self._calendar_ids: List[str] = []
        self._seen_calendars: set = set()

    @classmethod
    def build(cls, stores: Iterable[RecordStore]) -> 'RecordIndex':
        index = cls()
        for store in stores:
            for record in store.records():
                calendar_key = (record.calendar_id or '').strip().lower()
                if calendar_key and calendar_key not in index._seen_calendars:
                    index._seen_calendars.add(calendar_key)
                    index._calendar_ids.append(record.calendar_id.strip())
                if record.event_id:
                    index.add(record.calendar_id, record.event_id, (store, record.row))
        return index

    @staticmethod
    def _key(calendar_id: str, event_id: str) -> Tuple[str, str]:
        return (calendar_id or '').strip().lower(), event_key(event_id)

    def add(self, calendar_id: str, event_id: str, entry: IndexEntry) -> None:
        self._entries.setdefault(self._key(calendar_id, event_id), entry)

    def lookup(self, calendar_id: str, event_id: str) -> Optional[IndexEntry]:
        return self._entries.get(self._key(calendar_id, event_id)) or self._entries.get(self._key('', event_id))

    def remove(self, calendar_id: str, event_id: str) -> None:
        self._entries.pop(self._key(calendar_id, event_id), None)
        self._entries.pop(self._key('', event_id), None)

    def relink(self, old_calendar_id: str, old_event_id: str, new_calendar_id: str, new_event_id: str) -> None:
        """Point a moved record at its new event; the old event no longer matches."""
        entry = self.lookup(old_calendar_id, old_event_id)
        if entry is None:
            return
        self.remove(old_calendar_id, old_event_id)
        self.add(new_calendar_id, new_event_id, entry)

    def calendar_ids(self) -> List[str]:
        """Distinct non-empty calendar ids (case-insensitive), in store order."""
        return list(self._calendar_ids)

    def __len__(self) -> int:
        return len(self._entries)


class SyncEngine:
    """Incremental calendar sync with per-calendar sync tokens."""

    def __init__(
        self,
        calendar: GoogleCalendarService,
        directory: AssigneeDirectory,
        cursor_store: PropertyStore,
        transfer: AssigneeTransfer,
        limits: Optional[SyncLimits] = None,
        lookback_days: int = Config.INITIAL_LOOKBACK_DAYS,
        tz_name: str = Config.TARGET_TIMEZONE,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
        default_calendar_id: str = Config.DEFAULT_CALENDAR_ID,
        cursor_prefix: str = Config.SYNC_TOKEN_PREFIX
    ):
        self.calendar = calendar
        self.directory = directory
        self.cursor_store = cursor_store
        self.transfer = transfer
        self.limits = limits or SyncLimits()
        self.lookback_days = lookback_days
        self.tz = pytz.timezone(tz_name)
        self.tz_name = tz_name
        self.clock = clock
        self.default_calendar_id = default_calendar_id
        self.cursor_prefix = cursor_prefix

    def cursor_key(self, calendar_id: str) -> str:
        return f"{self.cursor_prefix}:{calendar_id}"

    def run(self, stores: Iterable[RecordStore]) -> SyncSummary:
        """
        Sync every referenced calendar into the record stores.

        A calendar that fails is logged and skipped; the others still run.
        """
        stores = list(stores)
        index = RecordIndex.build(stores)
        calendar_ids = index.calendar_ids()
        if not calendar_ids and self.default_calendar_id:
            calendar_ids = [self.default_calendar_id]

        summary = SyncSummary()
        logger.info(f"Syncing {len(calendar_ids)} calendar(s), {len(index)} linked record key(s)")

        for calendar_id in calendar_ids[:self.limits.max_calendars_per_run]:
            if summary.events_seen >= self.limits.max_events_per_run:
                logger.info(f"Event limit ({self.limits.max_events_per_run}) reached, stopping")
                break
            summary.calendars += 1
            try:
                self._sync_calendar(calendar_id, index, summary)
            except Exception as e:
                logger.error(f"Sync of calendar {calendar_id} failed: {e}", exc_info=True)
                summary.failed_calendars.append(calendar_id)

        logger.info(
            f"Sync done: {summary.calendars} calendar(s), {summary.events_seen} event(s), "
            f"{summary.matched} matched, {summary.deleted} deleted, {summary.transferred} transferred"
        )
        return summary

    def _lookback_start(self) -> datetime.datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = self.tz.localize(now)
        return now - datetime.timedelta(days=self.lookback_days)

    def _sync_calendar(self, calendar_id: str, index: RecordIndex, summary: SyncSummary) -> None:
        key = self.cursor_key(calendar_id)
        sync_token = self.cursor_store.get(key)
        wrote_token = False
        page_token = None
        pages = 0

        try:
            while True:
                page = self.calendar.list_events(
                    calendar_id,
                    sync_token=sync_token,
                    updated_min=None if sync_token else self._lookback_start(),
                    page_token=page_token,
                    show_deleted=True,
                    max_results=self.limits.page_size,
                )
                for event in page.items:
                    summary.events_seen += 1
                    self.reconcile(index, calendar_id, event, summary)
                pages += 1

                page_token = page.next_page_token
                if not page_token and page.next_sync_token:
                    self.cursor_store.set(key, page.next_sync_token)
                    wrote_token = True
                if (not page_token
                        or pages >= self.limits.max_pages_per_calendar
                        or summary.events_seen >= self.limits.max_events_per_run):
                    break
        except SyncTokenExpiredError:
            logger.warning(f"Sync token for {calendar_id} expired, resynchronizing from look-back window")
            summary.cursor_resets += 1
            self.cursor_store.delete(key)
            if not wrote_token:
                page = self.calendar.list_events(
                    calendar_id,
                    updated_min=self._lookback_start(),
                    show_deleted=True,
                    max_results=self.limits.page_size,
                )
                for event in page.items:
                    summary.events_seen += 1
                    self.reconcile(index, calendar_id, event, summary)
                if page.next_sync_token:
                    self.cursor_store.set(key, page.next_sync_token)

    def reconcile(self, index: RecordIndex, calendar_id: str, event: CalendarEvent, summary: SyncSummary) -> None:
        """Apply one calendar event to its linked record."""
        entry = index.lookup(calendar_id, event.event_id)
        if entry is None:
            return
        store, row = entry
        record = store.get_record(row)
        summary.matched += 1

        if not event.is_cancelled and event.description:
            try:
                result = self.transfer.handle_calendar_marker(store, record, event, calendar_id)
            except Exception as e:
                # Marker failures never block time reconciliation
                logger.error(f"{store.name} row {row}: transfer marker handling failed: {e}", exc_info=True)
                summary.marker_errors.append(f"{store.name} row {row}: {e}")
                result = MarkerResult()
            if result.outcome != MarkerOutcome.NONE and not result.ok:
                summary.marker_errors.append(
                    f"{store.name} row {row}: {result.error or result.annotation_error}"
                )
            if result.transferred:
                index.relink(calendar_id, event.event_id, result.new_calendar_id, result.new_event_id)
                summary.transferred += 1
                return

        if event.is_cancelled:
            updates = {
                RecordField.STATUS: Status.CALENDAR_DELETED,
                RecordField.DELETED_AT: self._local(event.updated) or self.clock(),
                RecordField.DELETED_BY: UpdateSource.CALENDAR,
                RecordField.CALENDAR_ID: '',
                RecordField.EVENT_ID: '',
            }
            index.remove(calendar_id, event.event_id)
            summary.deleted += 1
            logger.info(f"{store.name} row {row}: event cancelled on the calendar")
        else:
            times = event.local_times(self.tz_name)
            updates = {}
            if times['date']:
                updates[RecordField.DATE] = times['date']
            if times['start']:
                updates[RecordField.START] = times['start']
            if times['end']:
                updates[RecordField.END] = times['end']
            if record.status != Status.ASSIGNEE_CHANGED_FROM_CALENDAR and not record.is_pending:
                updates[RecordField.STATUS] = Status.CALENDAR_COMPLETE

        owner = self.directory.resolve_assignee_name(calendar_id)
        if owner:
            updates[RecordField.ASSIGNEE] = owner

        store.update_record(row, updates, source=UpdateSource.CALENDAR, at=self.clock())

    def _local(self, value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
        """Aware timestamp -> naive local time in the target timezone."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(self.tz).replace(tzinfo=None)
