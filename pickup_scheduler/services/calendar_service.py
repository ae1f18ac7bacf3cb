# File: pickup_scheduler/services/calendar_service.py

import datetime
from typing import Any, Dict, Optional
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from pickup_scheduler.core.exceptions import CalendarServiceError, SyncTokenExpiredError
from pickup_scheduler.utils.logger import setup_logger
from pickup_scheduler.models import CalendarEvent, EventPage, normalize_event_id

logger = setup_logger(__name__)

GONE_STATUSES = (404, 410)


def _status_of(error: HttpError) -> Optional[int]:
    try:
        return int(error.resp.status)
    except (AttributeError, TypeError, ValueError):
        return None


class GoogleCalendarService:
    """Handles all Google Calendar operations, scoped by calendar id."""

    def __init__(self, calendar_service: Resource):
        """
        Initialize calendar service.

        Args:
            calendar_service: Authenticated Google Calendar API resource
        """
        self.service = calendar_service

    def insert_event(self, calendar_id: str, body: Dict[str, Any]) -> CalendarEvent:
        """
        Create an event on a calendar.

        Args:
            calendar_id: Target calendar (the assignee's mailbox)
            body: Calendar API event resource

        Returns:
            The created event
        """
        logger.info(f"Inserting event '{body.get('summary', '')}' on {calendar_id}")
        try:
            created = self.service.events().insert(
                calendarId=calendar_id,
                body=body
            ).execute()
        except HttpError as e:
            raise CalendarServiceError(f"Event insert failed on {calendar_id}: {e}") from e
        return CalendarEvent.from_api(created, calendar_id)

    def patch_event(self, calendar_id: str, event_id: str, body: Dict[str, Any]) -> None:
        """Patch selected fields of an event."""
        logger.info(f"Patching event {event_id} on {calendar_id} ({', '.join(body)})")
        try:
            self.service.events().patch(
                calendarId=calendar_id,
                eventId=normalize_event_id(event_id),
                body=body
            ).execute()
        except HttpError as e:
            raise CalendarServiceError(f"Event update failed (ID: {event_id}): {e}") from e

    def get_event(self, calendar_id: str, event_id: str) -> CalendarEvent:
        """Fetch a single event."""
        try:
            data = self.service.events().get(
                calendarId=calendar_id,
                eventId=normalize_event_id(event_id)
            ).execute()
        except HttpError as e:
            raise CalendarServiceError(f"Event fetch failed (ID: {event_id}): {e}") from e
        return CalendarEvent.from_api(data, calendar_id)

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """
        Delete an event. An event that is already gone is not an error.

        Returns:
            True if deleted now, False if it no longer existed
        """
        logger.info(f"Deleting event {event_id} from {calendar_id}")
        try:
            self.service.events().delete(
                calendarId=calendar_id,
                eventId=normalize_event_id(event_id)
            ).execute()
        except HttpError as e:
            if _status_of(e) in GONE_STATUSES:
                logger.warning(f"Event {event_id} is already deleted, continuing")
                return False
            raise CalendarServiceError(f"Event delete failed (ID: {event_id}): {e}") from e
        return True

    def list_events(
        self,
        calendar_id: str,
        sync_token: Optional[str] = None,
        updated_min: Optional[datetime.datetime] = None,
        page_token: Optional[str] = None,
        show_deleted: bool = True,
        max_results: int = 250
    ) -> EventPage:
        """
        Fetch one page of events, incrementally when a sync token is given.

        Raises:
            SyncTokenExpiredError: the sync token is no longer valid (HTTP 410)
        """
        kwargs: Dict[str, Any] = {
            'calendarId': calendar_id,
            'showDeleted': show_deleted,
            'maxResults': max_results,
        }
        if page_token:
            kwargs['pageToken'] = page_token
        if sync_token:
            kwargs['syncToken'] = sync_token
        elif updated_min:
            kwargs['updatedMin'] = updated_min.isoformat()

        try:
            response = self.service.events().list(**kwargs).execute()
        except HttpError as e:
            if _status_of(e) == 410:
                raise SyncTokenExpiredError(f"Sync token is no longer valid for {calendar_id}") from e
            raise

        items = []
        for data in response.get('items', []):
            try:
                items.append(CalendarEvent.from_api(data, calendar_id))
            except ValueError as e:
                logger.warning(f"Could not parse event {data.get('id')}: {e}")

        return EventPage(
            items=items,
            next_page_token=response.get('nextPageToken'),
            next_sync_token=response.get('nextSyncToken'),
        )
