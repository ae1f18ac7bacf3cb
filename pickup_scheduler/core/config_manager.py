"""
Centralized configuration management for the pickup scheduler.
Loads settings from environment variables (and a .env file).
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from pickup_scheduler.models import SheetTarget, SheetType, SyncLimits, NotifierSettings, NotificationKind

# Load environment variables
load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Config:
    """Application configuration singleton."""
    
    BASE_DIR = Path(__file__).parent.parent.parent
    DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
    
    # Files
    TOKEN_FILE = Path(os.getenv("TOKEN_FILE", str(BASE_DIR / "token.json")))
    CREDENTIALS_FILE = Path(os.getenv("CREDENTIALS_FILE", str(BASE_DIR / "credentials.json")))
    STATE_DB_PATH = Path(os.getenv("STATE_DB_PATH", str(DATA_DIR / "state.db")))
    LOCK_DB_PATH = Path(os.getenv("LOCK_DB_PATH", str(DATA_DIR / "script.lock.db")))
    
    # Google Services
    SPREADSHEET_ID = os.getenv("SPREADSHEET_ID", "")
    REGULAR_SHEET_NAME = os.getenv("REGULAR_SHEET_NAME", "Regular Collection")
    SPOT_CLINIC_SHEET_NAME = os.getenv("SPOT_CLINIC_SHEET_NAME", "Spot Collection (Clinic)")
    SPOT_DEALER_SHEET_NAME = os.getenv("SPOT_DEALER_SHEET_NAME", "Spot Collection (Dealer)")
    ASSIGNEE_SHEET_NAME = os.getenv("ASSIGNEE_SHEET_NAME", "Assignee Master")
    ASSIGNEE_NAME_HEADER = os.getenv("ASSIGNEE_NAME_HEADER", "Assignee Name")
    ASSIGNEE_EMAIL_HEADER = os.getenv("ASSIGNEE_EMAIL_HEADER", "Email")
    DEFAULT_CALENDAR_ID = os.getenv("DEFAULT_CALENDAR_ID", "")
    GOOGLE_SCOPES = [
        'https://www.googleapis.com/auth/calendar',
        'https://www.googleapis.com/auth/spreadsheets',
    ]
    
    # Application Settings
    TARGET_TIMEZONE = os.getenv("TIMEZONE", "Asia/Tokyo")
    UPDATER_ID = os.getenv("UPDATER_ID", "pickup-scheduler")
    MAX_PROCESS_PER_RUN = _int_env("MAX_PROCESS_PER_RUN", 20)
    INITIAL_LOOKBACK_DAYS = _int_env("INITIAL_LOOKBACK_DAYS", 30)
    MAX_CALENDARS_PER_RUN = _int_env("MAX_CALENDARS_PER_RUN", 20)
    MAX_PAGES_PER_CALENDAR = _int_env("MAX_PAGES_PER_CALENDAR", 3)
    MAX_EVENTS_PER_RUN = _int_env("MAX_EVENTS_PER_RUN", 500)
    LOCK_TIMEOUT_SECONDS = float(os.getenv("LOCK_TIMEOUT_SECONDS", "1.0"))
    SYNC_TOKEN_PREFIX = "calendar_sync_token"
    
    # Notifications (Google Chat incoming webhooks)
    CHAT_WEBHOOK_URL = os.getenv("CHAT_WEBHOOK_URL", "")
    SPOT_CLINIC_WEBHOOK_URL = os.getenv("SPOT_CLINIC_WEBHOOK_URL", "")
    SPOT_DEALER_WEBHOOK_URL = os.getenv("SPOT_DEALER_WEBHOOK_URL", "")
    CHAT_MENTION_USER = os.getenv("CHAT_MENTION_USER", "")
    CHAT_MENTION_KINDS = [
        k.strip() for k in os.getenv("CHAT_MENTION_KINDS", NotificationKind.ERROR.value).split(',')
        if k.strip()
    ]
    
    @classmethod
    def sheet_targets(cls) -> List[SheetTarget]:
        """Record sheets in processing order."""
        return [
            SheetTarget(cls.REGULAR_SHEET_NAME, SheetType.REGULAR, check_availability=True),
            SheetTarget(cls.SPOT_CLINIC_SHEET_NAME, SheetType.SPOT_CLINIC),
            SheetTarget(cls.SPOT_DEALER_SHEET_NAME, SheetType.SPOT_DEALER),
        ]
    
    @classmethod
    def sync_limits(cls) -> SyncLimits:
        return SyncLimits(
            max_calendars_per_run=cls.MAX_CALENDARS_PER_RUN,
            max_pages_per_calendar=cls.MAX_PAGES_PER_CALENDAR,
            max_events_per_run=cls.MAX_EVENTS_PER_RUN,
        )
    
    @classmethod
    def notifier_settings(cls) -> NotifierSettings:
        return NotifierSettings(
            default_webhook_url=cls.CHAT_WEBHOOK_URL or None,
            spot_clinic_webhook_url=cls.SPOT_CLINIC_WEBHOOK_URL or None,
            spot_dealer_webhook_url=cls.SPOT_DEALER_WEBHOOK_URL or None,
            mention_user=cls.CHAT_MENTION_USER or None,
            mention_kinds=tuple(cls.CHAT_MENTION_KINDS),
        )
    
    @classmethod
    def validate(cls) -> bool:
        """Validate that all required configuration is present."""
        errors = []
        
        if not cls.SPREADSHEET_ID:
            errors.append("SPREADSHEET_ID not set")
        
        if not cls.CREDENTIALS_FILE.exists() and not cls.TOKEN_FILE.exists():
            errors.append(f"credentials.json not found at {cls.CREDENTIALS_FILE}")
        
        if not cls.CHAT_WEBHOOK_URL:
            # Not fatal: notifications are best-effort
            print("Configuration Warning: CHAT_WEBHOOK_URL not set, notifications are disabled")
        
        if errors:
            for error in errors:
                print(f"Configuration Error: {error}")
            return False
        
        return True
