# File: pickup_scheduler/core/orchestrator.py
"""
Main orchestrator module for the pickup scheduler.

Wires the record stores, the calendar client and the processors together
and exposes the job entry points (task processing, calendar sync) and the
human request operations.
"""

import datetime
from typing import Callable, Dict, List, Optional

from pickup_scheduler.core.config_manager import Config
from pickup_scheduler.core.lock import ScriptLock
from pickup_scheduler.core.state_store import PropertyStore
from pickup_scheduler.utils.logger import setup_logger
from pickup_scheduler.auth.google_auth import get_google_services
from pickup_scheduler.models import ProcessSummary, Record, Status, SyncLimits, SyncSummary
from pickup_scheduler.processors import status_machine
from pickup_scheduler.processors.sync_engine import SyncEngine
from pickup_scheduler.processors.task_processor import TaskProcessor
from pickup_scheduler.processors.transfer import AssigneeTransfer
from pickup_scheduler.services.assignee_directory import AssigneeDirectory
from pickup_scheduler.services.calendar_service import GoogleCalendarService
from pickup_scheduler.services.notification_service import ChatNotifier
from pickup_scheduler.services.record_store import RecordStore
from pickup_scheduler.services.service_factory import ServiceFactory

logger = setup_logger(__name__)


class Orchestrator:
    """
    Entry points of the pickup scheduler.

    The two jobs share one deployment-wide lock; a job that cannot take it
    returns None without doing any work.
    """

    def __init__(
        self,
        calendar: GoogleCalendarService,
        stores: List[RecordStore],
        directory: AssigneeDirectory,
        notifier: ChatNotifier,
        cursor_store: PropertyStore,
        lock: ScriptLock,
        limits: Optional[SyncLimits] = None,
        tz_name: str = Config.TARGET_TIMEZONE,
        max_process: int = Config.MAX_PROCESS_PER_RUN,
        lookback_days: int = Config.INITIAL_LOOKBACK_DAYS,
        default_calendar_id: str = Config.DEFAULT_CALENDAR_ID,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now
    ):
        self.stores = stores
        self.lock = lock
        self.clock = clock
        self.transfer = AssigneeTransfer(calendar, directory, notifier, clock=clock)
        self.task_processor = TaskProcessor(
            calendar, directory, notifier, self.transfer,
            tz_name=tz_name, max_process=max_process, clock=clock
        )
        self.sync_engine = SyncEngine(
            calendar, directory, cursor_store, self.transfer,
            limits=limits, lookback_days=lookback_days, tz_name=tz_name,
            clock=clock, default_calendar_id=default_calendar_id
        )

    # ---- jobs ----

    def run_scheduled_tasks(self) -> Optional[ProcessSummary]:
        """Consume pending statuses. Returns None if another job holds the lock."""
        with self.lock.acquire() as acquired:
            if not acquired:
                logger.info("Another job is running, skipping task processing")
                return None
            logger.info("=" * 60)
            logger.info("Starting task processing")
            logger.info("=" * 60)
            return self.task_processor.run(self.stores)

    def run_calendar_sync(self) -> Optional[SyncSummary]:
        """Pull calendar changes into the records. Returns None if locked out."""
        with self.lock.acquire() as acquired:
            if not acquired:
                logger.info("Another job is running, skipping calendar sync")
                return None
            logger.info("=" * 60)
            logger.info("Starting calendar sync")
            logger.info("=" * 60)
            return self.sync_engine.run(self.stores)

    # ---- human requests ----

    def store_for(self, sheet_name: str) -> RecordStore:
        stores: Dict[str, RecordStore] = {s.name: s for s in self.stores}
        if sheet_name not in stores:
            raise ValueError(f"Unknown sheet '{sheet_name}'. Known sheets: {', '.join(stores)}")
        return stores[sheet_name]

    def request_register(self, sheet_name: str, row: int) -> Record:
        return status_machine.request_register(self.store_for(sheet_name), row, at=self.clock())

    def request_refresh(self, sheet_name: str, row: int) -> bool:
        return status_machine.request_refresh(self.store_for(sheet_name), row, at=self.clock())

    def request_cancel(self, sheet_name: str, row: int) -> Status:
        return status_machine.request_cancel(self.store_for(sheet_name), row, at=self.clock())

    def request_hold(self, sheet_name: str, row: int) -> None:
        status_machine.request_hold(self.store_for(sheet_name), row, at=self.clock())

    def on_assignee_edited(self, sheet_name: str, row: int) -> bool:
        return status_machine.on_assignee_edited(self.store_for(sheet_name), row, at=self.clock())


class OrchestratorFactory:
    """Factory for creating Orchestrator instances with dependency injection."""
    
    @staticmethod
    def create() -> Orchestrator:
        """
        Create a fully initialized Orchestrator from Config.
        
        Raises:
            ValueError: If configuration is invalid
            ConnectionError: If authentication fails
        """
        logger.info("Creating Orchestrator via factory")
        
        if not Config.validate():
            raise ValueError("Configuration validation failed. Check your .env file.")
        
        calendar_resource, sheets_resource = get_google_services()
        if not calendar_resource or not sheets_resource:
            raise ConnectionError("Google authentication failed. Run 'pickup-scheduler auth' first.")
        
        calendar, sheets = ServiceFactory.create_services(calendar_resource, sheets_resource, Config.SPREADSHEET_ID)
        stores = ServiceFactory.create_record_stores(sheets, Config.sheet_targets())
        directory = ServiceFactory.create_directory(sheets)
        
        return Orchestrator(
            calendar=calendar,
            stores=stores,
            directory=directory,
            notifier=ServiceFactory.create_notifier(),
            cursor_store=PropertyStore(Config.STATE_DB_PATH),
            lock=ScriptLock(Config.LOCK_DB_PATH, timeout=Config.LOCK_TIMEOUT_SECONDS),
            limits=Config.sync_limits(),
        )
