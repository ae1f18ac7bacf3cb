"""
Result models returned by the processors.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from .enums import MarkerOutcome


@dataclass
class MarkerResult:
    """
    Outcome of handling a transfer marker found in an event description.

    Soft failures (unresolvable assignee, failed annotation patch, failed
    transfer) are reported here instead of being raised, so reconciliation
    of the event can carry on.
    """
    outcome: MarkerOutcome = MarkerOutcome.NONE
    assignee_name: Optional[str] = None
    error: Optional[str] = None
    annotation_error: Optional[str] = None
    new_calendar_id: Optional[str] = None
    new_event_id: Optional[str] = None

    @property
    def transferred(self) -> bool:
        return self.outcome == MarkerOutcome.TRANSFERRED

    @property
    def ok(self) -> bool:
        return self.error is None and self.annotation_error is None


@dataclass
class ProcessSummary:
    """Counts for one task processor invocation."""
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    limit_reached: bool = False
    errors: List[str] = field(default_factory=list)


@dataclass
class SyncSummary:
    """Counts for one sync engine invocation."""
    calendars: int = 0
    events_seen: int = 0
    matched: int = 0
    deleted: int = 0
    transferred: int = 0
    cursor_resets: int = 0
    failed_calendars: List[str] = field(default_factory=list)
    marker_errors: List[str] = field(default_factory=list)
