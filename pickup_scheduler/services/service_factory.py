# File: pickup_scheduler/services/service_factory.py

from typing import List, Tuple
from googleapiclient.discovery import Resource

from pickup_scheduler.core.config_manager import Config
from pickup_scheduler.models import SheetTarget
from pickup_scheduler.utils.logger import setup_logger
from pickup_scheduler.services.assignee_directory import AssigneeDirectory
from pickup_scheduler.services.calendar_service import GoogleCalendarService
from pickup_scheduler.services.notification_service import ChatNotifier
from pickup_scheduler.services.record_store import SheetRecordStore
from pickup_scheduler.services.sheets_service import GoogleSheetsService

logger = setup_logger(__name__)


class ServiceFactory:
    """Factory for creating service instances."""
    
    @staticmethod
    def create_services(
        calendar_service: Resource,
        sheets_service: Resource,
        spreadsheet_id: str = Config.SPREADSHEET_ID
    ) -> Tuple[GoogleCalendarService, GoogleSheetsService]:
        """
        Create service wrapper instances.
        
        Args:
            calendar_service: Authenticated calendar API resource
            sheets_service: Authenticated sheets API resource
            spreadsheet_id: Spreadsheet holding the record sheets
        
        Returns:
            Tuple of (calendar_service, sheets_service)
        """
        return (
            GoogleCalendarService(calendar_service),
            GoogleSheetsService(sheets_service, spreadsheet_id)
        )
    
    @staticmethod
    def create_record_stores(
        sheets: GoogleSheetsService,
        targets: List[SheetTarget]
    ) -> List[SheetRecordStore]:
        """One record store per configured sheet, in processing order."""
        return [SheetRecordStore(sheets, target, Config.UPDATER_ID) for target in targets]
    
    @staticmethod
    def create_directory(sheets: GoogleSheetsService) -> AssigneeDirectory:
        """Load the assignee master sheet."""
        _, rows = sheets.get_table(Config.ASSIGNEE_SHEET_NAME)
        return AssigneeDirectory.from_rows(rows, Config.ASSIGNEE_NAME_HEADER, Config.ASSIGNEE_EMAIL_HEADER)
    
    @staticmethod
    def create_notifier() -> ChatNotifier:
        return ChatNotifier(Config.notifier_settings())
