"""
Data models for pickup scheduler configuration.
"""

from dataclasses import dataclass
from typing import Optional
from .enums import SheetType

@dataclass
class SheetTarget:
    """A record sheet the jobs walk over."""
    name: str
    sheet_type: SheetType
    check_availability: bool = False

    def __post_init__(self):
        """Convert string sheet type to enum."""
        if isinstance(self.sheet_type, str):
            self.sheet_type = SheetType(self.sheet_type)

    @property
    def channel(self) -> str:
        """Notification channel for rows of this sheet."""
        return self.sheet_type.value


@dataclass
class SyncLimits:
    """Backpressure ceilings for one sync invocation."""
    max_calendars_per_run: int = 20
    max_pages_per_calendar: int = 3
    max_events_per_run: int = 500
    page_size: int = 250

    def __post_init__(self):
        if min(self.max_calendars_per_run, self.max_pages_per_calendar,
               self.max_events_per_run, self.page_size) < 1:
            raise ValueError("Sync limits must be positive")


@dataclass
class NotifierSettings:
    """Webhook routing for chat notifications."""
    default_webhook_url: Optional[str] = None
    spot_clinic_webhook_url: Optional[str] = None
    spot_dealer_webhook_url: Optional[str] = None
    mention_user: Optional[str] = None
    mention_kinds: tuple = ()

    def webhook_for(self, channel: str) -> Optional[str]:
        """Spot sheets fall back to the default webhook when unset."""
        if channel == SheetType.SPOT_CLINIC.value and self.spot_clinic_webhook_url:
            return self.spot_clinic_webhook_url
        if channel == SheetType.SPOT_DEALER.value and self.spot_dealer_webhook_url:
            return self.spot_dealer_webhook_url
        return self.default_webhook_url
