# File: tests/conftest.py
"""
Pytest configuration and shared fixtures.
Provides in-memory fakes for the record store, the calendar client and the
notifier so processors can be exercised without Google APIs.
"""

import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from unittest.mock import Mock

import pytest

os.environ.setdefault("LOG_DIR", str(Path(tempfile.gettempdir()) / "pickup_scheduler_test_logs"))

from pickup_scheduler.core.exceptions import CalendarServiceError
from pickup_scheduler.core.state_store import PropertyStore
from pickup_scheduler.models import (
    CalendarEvent, EventPage, RecordField, SheetTarget, SheetType, Status, normalize_event_id
)
from pickup_scheduler.services.assignee_directory import AssigneeDirectory
from pickup_scheduler.services.record_store import RecordStore, _header

FIXED_NOW = datetime(2025, 6, 1, 9, 0, 0)

HEADERS = [f.value for f in RecordField]


# ==================== Fakes ====================

class MemoryRecordStore(RecordStore):
    """RecordStore over a list of dicts; every write is recorded."""

    def __init__(self, target: SheetTarget, rows: Iterable[Mapping[Any, Any]] = (), headers: List[str] = HEADERS):
        super().__init__(target, updater_id="test-runner")
        self.headers = list(headers)
        self.rows: List[Dict[str, Any]] = []
        self.writes: List[Tuple[int, Dict[str, Any]]] = []
        for row in rows:
            self.append_row(row)
        self.writes.clear()

    def read_field(self, row, name):
        index = row - 2
        if index < 0 or index >= len(self.rows):
            return ''
        return self.rows[index].get(_header(name), '')

    def write_fields(self, row, values):
        applied = {_header(k): v for k, v in values.items() if _header(k) in self.headers}
        self.writes.append((row, applied))
        self.rows[row - 2].update(applied)

    def append_row(self, values):
        by_header = {_header(k): v for k, v in values.items()}
        self.rows.append({h: by_header.get(h, '') for h in self.headers})
        return len(self.rows) + 1

    def iter_rows(self):
        for index, values in enumerate(self.rows):
            yield index + 2, dict(values)

    def cell(self, row: int, field: RecordField) -> Any:
        return self.read_field(row, field)


class FakeCalendar:
    """
    Stand-in for GoogleCalendarService.

    Events live in `events[(calendar_id, event_id)]` as API dicts. List
    responses are scripted per calendar through `pages`; an entry that is an
    exception instance is raised instead of returned.
    """

    def __init__(self):
        self.events: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.pages: Dict[str, List[Any]] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.fail: Dict[str, Exception] = {}
        self._next_id = 0

    def _maybe_fail(self, op: str):
        if op in self.fail:
            raise self.fail[op]

    def add_event(self, calendar_id: str, event_id: str, **fields) -> Dict[str, Any]:
        data = {'id': event_id, 'status': 'confirmed'}
        data.update(fields)
        self.events[(calendar_id, event_id)] = data
        return data

    def insert_event(self, calendar_id, body):
        self.calls.append(('insert', (calendar_id, body)))
        self._maybe_fail('insert')
        self._next_id += 1
        event_id = f"evt{self._next_id}"
        data = dict(body, id=event_id, status='confirmed')
        self.events[(calendar_id, event_id)] = data
        return CalendarEvent.from_api(data, calendar_id)

    def patch_event(self, calendar_id, event_id, body):
        self.calls.append(('patch', (calendar_id, event_id, body)))
        self._maybe_fail('patch')
        key = (calendar_id, normalize_event_id(event_id))
        if key not in self.events:
            raise CalendarServiceError(f"Event update failed (ID: {event_id}): 404")
        self.events[key].update(body)

    def get_event(self, calendar_id, event_id):
        self.calls.append(('get', (calendar_id, event_id)))
        self._maybe_fail('get')
        key = (calendar_id, normalize_event_id(event_id))
        if key not in self.events:
            raise CalendarServiceError(f"Event fetch failed (ID: {event_id}): 404")
        return CalendarEvent.from_api(self.events[key], calendar_id)

    def delete_event(self, calendar_id, event_id):
        self.calls.append(('delete', (calendar_id, event_id)))
        self._maybe_fail('delete')
        return self.events.pop((calendar_id, normalize_event_id(event_id)), None) is not None

    def list_events(self, calendar_id, sync_token=None, updated_min=None, page_token=None,
                    show_deleted=True, max_results=250):
        self.calls.append(('list', dict(
            calendar_id=calendar_id, sync_token=sync_token, updated_min=updated_min,
            page_token=page_token, show_deleted=show_deleted,
        )))
        queue = self.pages.get(calendar_id)
        if not queue:
            return EventPage()
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def ops(self, name: str) -> List[Any]:
        return [args for op, args in self.calls if op == name]


def api_event(event_id: str, calendar_id: str = "yamada@example.com", start: str = "2025-06-10T10:00:00+09:00",
              end: str = "2025-06-10T11:00:00+09:00", **fields) -> CalendarEvent:
    data = {
        'id': event_id,
        'status': 'confirmed',
        'start': {'dateTime': start},
        'end': {'dateTime': end},
        'updated': '2025-06-01T00:00:00Z',
    }
    data.update(fields)
    return CalendarEvent.from_api(data, calendar_id)


def record_row(**fields) -> Dict[str, Any]:
    """Row values keyed by RecordField name, e.g. record_row(STATUS=Status.HOLD)."""
    return {RecordField[name].value: (value.value if isinstance(value, Status) else value)
            for name, value in fields.items()}


# ==================== Fixtures ====================

@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def regular_target():
    return SheetTarget("Regular Collection", SheetType.REGULAR, check_availability=True)


@pytest.fixture
def spot_target():
    return SheetTarget("Spot Collection (Clinic)", SheetType.SPOT_CLINIC)


@pytest.fixture
def base_row():
    """A complete, schedulable, unregistered row."""
    return record_row(
        ID="R-001",
        STATUS=Status.UNHANDLED,
        DATE="2025-06-10",
        START="10:00",
        END="11:00",
        ASSIGNEE="Yamada",
        AREA="North",
        CLINIC="Green Clinic",
        POSTAL_CODE="100-0001",
        ADDRESS="1-1 Chiyoda",
        ROW_URL="https://example.com/sheet#row=2",
    )


@pytest.fixture
def make_store(regular_target):
    def _make(*rows, target: Optional[SheetTarget] = None):
        return MemoryRecordStore(target or regular_target, rows)
    return _make


@pytest.fixture
def fake_calendar():
    return FakeCalendar()


@pytest.fixture
def directory():
    return AssigneeDirectory({
        "Yamada": "yamada@example.com",
        "Sato": "sato@example.com",
    })


@pytest.fixture
def notifier():
    mock = Mock()
    mock.notify.return_value = True
    return mock


@pytest.fixture
def property_store(tmp_path):
    return PropertyStore(tmp_path / "state.db")
