# File: pickup_scheduler/core/exceptions.py
"""
Exception hierarchy for the pickup scheduler.
"""


class PickupSchedulerError(Exception):
    """Base class for all scheduler errors."""


class RequestValidationError(PickupSchedulerError):
    """A human request was rejected at request time; nothing was written."""


class MissingFieldError(PickupSchedulerError):
    """A field required by the operation is empty."""

    def __init__(self, *fields: str):
        self.fields = fields
        super().__init__(f"Required field(s) missing: {', '.join(fields)}")


class DuplicateRegistrationError(PickupSchedulerError):
    """The record already carries a calendar event id."""


class AssigneeNotFoundError(PickupSchedulerError):
    """The assignee name has no calendar in the assignee master."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No calendar found in the assignee master for: {name}")


class CalendarServiceError(PickupSchedulerError):
    """A Calendar API call failed."""


class SyncTokenExpiredError(CalendarServiceError):
    """The stored sync token was rejected (HTTP 410); a full resync is required."""


class TransferError(PickupSchedulerError):
    """Moving an event between calendars failed; the record keeps its old link."""
