# File: pickup_scheduler/models/enums.py

from enum import Enum

class Status(Enum):
    """Record status values as written to the sheet's Status column."""
    # Quiescent
    UNHANDLED = "Unhandled"
    HOLD = "Hold"
    CALENDAR_COMPLETE = "CalendarComplete"
    CANCEL_COMPLETE = "CancelComplete"
    CALENDAR_DELETED = "CalendarDeleted"
    RESYNC_COMPLETE = "ResyncComplete"
    ASSIGNEE_CHANGED_FROM_CALENDAR = "AssigneeChangedFromCalendar"
    ERROR = "Error"
    # Pending - consumed by the task processor
    CALENDAR_REGISTER = "CalendarRegister"
    RESYNC_REGISTER = "ResyncRegister"
    CANCEL_REGISTER = "CancelRegister"
    ASSIGNEE_CHANGE_REGISTER = "AssigneeChangeRegister"

    @classmethod
    def parse(cls, value) -> "Status":
        """Blank or unknown cells read as UNHANDLED."""
        text = str(value or '').strip()
        for status in cls:
            if status.value == text:
                return status
        return cls.UNHANDLED

    @property
    def is_pending(self) -> bool:
        """Work queued for the task processor."""
        return self in PENDING_STATES


class UpdateSource(Enum):
    """Which side produced the last write to a record."""
    RECORD = "record-side"
    CALENDAR = "calendar-side"


class SheetType(Enum):
    """Sheet kinds; also used as the notification channel."""
    REGULAR = "regular"
    SPOT_CLINIC = "spot_clinic"
    SPOT_DEALER = "spot_dealer"


class NotificationKind(Enum):
    """Message kinds posted to chat."""
    ERROR = "Error"
    CALENDAR_REGISTERED = "Calendar Registered"
    CANCELLED = "Cancelled"
    ASSIGNEE_CHANGED_FROM_CALENDAR = "Assignee Changed (calendar)"


class MarkerOutcome(Enum):
    """Result of inspecting an event description for a transfer marker."""
    NONE = "none"
    TRANSFERRED = "transferred"
    ALREADY_PROCESSED = "already_processed"
    UNRESOLVED = "unresolved"
    FAILED = "failed"


PENDING_STATES = frozenset({
    Status.CALENDAR_REGISTER,
    Status.RESYNC_REGISTER,
    Status.CANCEL_REGISTER,
    Status.ASSIGNEE_CHANGE_REGISTER,
})

CANCELLED_STATES = frozenset({Status.CANCEL_COMPLETE, Status.CALENDAR_DELETED})
