# File: pickup_scheduler/services/assignee_directory.py

import re
from typing import Dict, Iterable, Mapping, Any, Optional

from pickup_scheduler.models import nz
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

WHITESPACE = re.compile(r"\s+")


def _squash(name: str) -> str:
    """Drop all whitespace, including full-width spaces."""
    return WHITESPACE.sub('', name.replace('　', ' '))


class AssigneeDirectory:
    """
    Assignee master lookups: person name <-> calendar id (their mailbox).

    Names match exactly first, then with whitespace removed.
    """

    def __init__(self, entries: Mapping[str, str]):
        self._by_name: Dict[str, str] = {}
        self._by_calendar: Dict[str, str] = {}
        for name, calendar_id in entries.items():
            name, calendar_id = nz(name), nz(calendar_id)
            if not name or not calendar_id:
                continue
            self._by_name.setdefault(name, calendar_id)
            self._by_name.setdefault(_squash(name), calendar_id)
            self._by_calendar.setdefault(calendar_id.lower(), name)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]], name_header: str, email_header: str) -> 'AssigneeDirectory':
        """Build the directory from assignee master rows."""
        entries = {}
        for row in rows:
            name, email = nz(row.get(name_header)), nz(row.get(email_header))
            if name and email:
                entries.setdefault(name, email)
        logger.debug(f"Loaded {len(entries)} assignees")
        return cls(entries)

    def resolve_assignee_calendar_id(self, name: str) -> Optional[str]:
        name = nz(name)
        if not name:
            return None
        return self._by_name.get(name) or self._by_name.get(_squash(name))

    def resolve_assignee_name(self, calendar_id: str) -> Optional[str]:
        return self._by_calendar.get(nz(calendar_id).lower())
