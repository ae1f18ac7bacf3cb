# File: pickup_scheduler/services/notification_service.py

from typing import Union

import requests

from pickup_scheduler.models import NotificationKind, NotifierSettings, Record, RecordField
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)


class ChatNotifier:
    """
    Fire-and-forget delivery to Google Chat incoming webhooks.

    Delivery failures are logged and swallowed; a notification must never
    fail the operation that produced it.
    """

    def __init__(self, settings: NotifierSettings, timeout: float = 10.0):
        self.settings = settings
        self.timeout = timeout

    def notify(self, kind: Union[NotificationKind, str], text: str, channel: str) -> bool:
        """
        Post a message.

        Args:
            kind: Message kind, shown as a header and used for mentions
            text: Message body
            channel: Sheet type of the originating record

        Returns:
            True if the webhook accepted the message
        """
        kind_label = kind.value if isinstance(kind, NotificationKind) else str(kind)
        webhook_url = self.settings.webhook_for(channel)
        if not webhook_url:
            logger.debug(f"No webhook for channel '{channel}', dropping [{kind_label}] message")
            return False

        mention = ''
        if self.settings.mention_user and kind_label in self.settings.mention_kinds:
            mention = f"<{self.settings.mention_user}> "

        payload = {'text': f"{mention}[{kind_label}]\n{text}"}
        try:
            response = requests.post(webhook_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Chat notification failed ({kind_label}): {e}")
            return False
        return True


def build_error_notification(record: Record, operation: str, message: str) -> str:
    """Human-readable error report for a record the processor gave up on."""
    lines = [
        "[Automatic processing error]",
        "",
        f"Operation: {operation}",
        f"Request ID: {record.record_id or '(not set)'}",
        f"Clinic: {record.detail(RecordField.CLINIC) or '(not set)'}",
        f"Assignee: {record.assignee or '(not set)'}",
        f"Error: {message}",
        "",
        f"Row: {record.detail(RecordField.ROW_URL) or f'row {record.row}'}",
        "",
        "* The status was changed to Error.",
        "* Fix the row, then set the status back to re-run it.",
    ]
    return '\n'.join(lines)
