# File: tests/unit/test_status_machine.py
"""
Unit tests for request-time status transitions.
"""

import pytest

from pickup_scheduler.core.exceptions import RequestValidationError
from pickup_scheduler.models import RecordField, Status, UpdateSource, record_from_row
from pickup_scheduler.processors.status_machine import (
    QUIESCENT_STATES, missing_registration_fields, on_assignee_edited, parse_weekday_list,
    passes_availability, request_cancel, request_hold, request_refresh, request_register,
)
from tests.conftest import FIXED_NOW, record_row


def registered(base_row, **extra):
    row = dict(base_row)
    row.update(record_row(CALENDAR_ID="yamada@example.com", EVENT_ID="evt1", STATUS=Status.CALENDAR_COMPLETE))
    row.update(record_row(**extra))
    return row


class TestAvailability:
    """Test closed-day parsing and checking."""

    def test_parse_weekday_list(self):
        assert parse_weekday_list("Sunday, Wed / sat") == {6, 2, 5}
        assert parse_weekday_list("Tue、Thu") == {1, 3}
        assert parse_weekday_list("") == set()
        assert parse_weekday_list("holidays") == set()

    def test_scheduled_on_closed_day_fails(self, base_row):
        # 2025-06-10 is a Tuesday
        record = record_from_row(2, dict(base_row, **record_row(CLOSED_DAYS="Tuesday")))
        assert not passes_availability(record)

    def test_morning_and_afternoon_columns_count(self, base_row):
        record = record_from_row(2, dict(base_row, **record_row(AFTERNOON_CLOSED="tue")))
        assert not passes_availability(record)

    def test_open_day_passes(self, base_row):
        record = record_from_row(2, dict(base_row, **record_row(CLOSED_DAYS="Sun, Sat")))
        assert passes_availability(record)

    def test_missing_fields(self, base_row):
        record = record_from_row(2, dict(base_row, **record_row(AREA="", START="")))
        assert missing_registration_fields(record) == [RecordField.START.value, RecordField.AREA.value]


class TestRequestRegister:
    """Test registration requests."""

    def test_queues_registration(self, make_store, base_row):
        store = make_store(base_row)

        record = request_register(store, 2, at=FIXED_NOW)

        assert record.status == Status.CALENDAR_REGISTER
        assert store.cell(2, RecordField.STATUS) == "CalendarRegister"
        assert store.cell(2, RecordField.UPDATE_SOURCE) == UpdateSource.RECORD.value
        assert store.cell(2, RecordField.UPDATED_AT) == "2025-06-01 09:00:00"
        assert store.cell(2, RecordField.UPDATED_BY) == "test-runner"

    def test_missing_fields_rejected_without_write(self, make_store, base_row):
        store = make_store(dict(base_row, **record_row(ASSIGNEE="")))

        with pytest.raises(RequestValidationError, match="Assignee"):
            request_register(store, 2)
        assert store.writes == []

    def test_closed_day_rejected_on_regular_sheet(self, make_store, base_row):
        store = make_store(dict(base_row, **record_row(CLOSED_DAYS="Tuesday")))

        with pytest.raises(RequestValidationError):
            request_register(store, 2)
        assert store.writes == []

    def test_closed_day_not_checked_on_spot_sheet(self, make_store, base_row, spot_target):
        store = make_store(dict(base_row, **record_row(CLOSED_DAYS="Tuesday")), target=spot_target)

        request_register(store, 2)
        assert store.cell(2, RecordField.STATUS) == "CalendarRegister"

    def test_already_registered_rejected(self, make_store, base_row):
        store = make_store(registered(base_row))

        with pytest.raises(RequestValidationError, match="Already registered"):
            request_register(store, 2)
        assert store.writes == []

    def test_unknown_row(self, make_store, base_row):
        store = make_store(base_row)
        with pytest.raises(KeyError):
            request_register(store, 9)


class TestOtherRequests:
    """Test refresh, cancel, hold and the assignee edit hook."""

    def test_refresh_unregistered_is_noop(self, make_store, base_row):
        store = make_store(base_row)
        assert request_refresh(store, 2) is False
        assert store.writes == []

    def test_refresh_registered(self, make_store, base_row):
        store = make_store(registered(base_row))
        assert request_refresh(store, 2) is True
        assert store.cell(2, RecordField.STATUS) == "ResyncRegister"

    def test_cancel_without_event_completes_directly(self, make_store, base_row):
        store = make_store(base_row)
        assert request_cancel(store, 2) == Status.CANCEL_COMPLETE
        assert store.cell(2, RecordField.STATUS) == "CancelComplete"

    def test_cancel_already_cancelled_writes_nothing(self, make_store, base_row):
        store = make_store(dict(base_row, **record_row(STATUS=Status.CANCEL_COMPLETE)))
        assert request_cancel(store, 2) == Status.CANCEL_COMPLETE
        assert store.writes == []

    def test_cancel_with_event_is_queued(self, make_store, base_row):
        store = make_store(registered(base_row))
        assert request_cancel(store, 2) == Status.CANCEL_REGISTER
        assert store.cell(2, RecordField.EVENT_ID) == "evt1"

    def test_hold(self, make_store, base_row):
        store = make_store(base_row)
        request_hold(store, 2)
        assert store.cell(2, RecordField.STATUS) == "Hold"

    def test_assignee_edit_on_registered_row(self, make_store, base_row):
        store = make_store(registered(base_row))
        assert on_assignee_edited(store, 2) is True
        assert store.cell(2, RecordField.STATUS) == "AssigneeChangeRegister"

    def test_assignee_edit_on_unregistered_row_is_ignored(self, make_store, base_row):
        store = make_store(base_row)
        assert on_assignee_edited(store, 2) is False
        assert store.writes == []

    def test_pending_and_quiescent_partition_statuses(self):
        assert QUIESCENT_STATES.isdisjoint({s for s in Status if s.is_pending})
        assert len(QUIESCENT_STATES) == 8
