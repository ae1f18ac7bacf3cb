# File: tests/unit/test_transfer.py
"""
Unit tests for the transfer marker and the copy-then-delete move.
"""

import pytest

from pickup_scheduler.core.exceptions import AssigneeNotFoundError, CalendarServiceError, TransferError
from pickup_scheduler.models import MarkerOutcome, RecordField, Status, record_from_row
from pickup_scheduler.processors.transfer import (
    AssigneeTransfer, Marker, annotate_marker, format_marker, parse_marker,
)
from tests.conftest import api_event, record_row

DESCRIPTION = "== Summary\n- Clinic: Green Clinic\n\n== Assignee change\n- Target assignee: «»\n\n== Management"


@pytest.fixture
def transfer(fake_calendar, directory, notifier, clock):
    return AssigneeTransfer(fake_calendar, directory, notifier, clock=clock)


@pytest.fixture
def linked_store(make_store, base_row):
    return make_store(dict(base_row, **record_row(
        STATUS=Status.CALENDAR_COMPLETE, CALENDAR_ID="yamada@example.com", EVENT_ID="evt-old",
    )))


def seed_event(fake_calendar, description):
    return fake_calendar.add_event(
        "yamada@example.com", "evt-old",
        summary="Green Clinic pickup",
        location="Green Clinic",
        description=description,
        start={'dateTime': '2025-06-10T10:00:00+09:00', 'timeZone': 'Asia/Tokyo'},
        end={'dateTime': '2025-06-10T11:00:00+09:00', 'timeZone': 'Asia/Tokyo'},
    )


class TestMarker:
    """Test marker parsing and annotation."""

    def test_placeholder_is_not_pending(self):
        marker = parse_marker(DESCRIPTION)
        assert marker == Marker("", None)
        assert not marker.is_pending

    def test_filled_marker_is_pending(self):
        marker = parse_marker(DESCRIPTION.replace("«»", "«Sato»"))
        assert marker.name == "Sato"
        assert marker.is_pending

    @pytest.mark.parametrize("annotation", ["processed", "error"])
    def test_annotated_marker_is_not_pending(self, annotation):
        marker = parse_marker(f"Target assignee: «Sato» -> {annotation}")
        assert marker.annotation == annotation
        assert not marker.is_pending

    def test_full_width_colon(self):
        assert parse_marker("Target assignee：«Sato»").name == "Sato"

    def test_no_marker(self):
        assert parse_marker("plain text") is None
        assert parse_marker("") is None

    def test_annotate_replaces_marker_line_only(self):
        text = DESCRIPTION.replace("«»", "«Sato»")
        annotated = annotate_marker(text, "Sato", "processed")
        assert "- Target assignee: «Sato» -> processed\n" in annotated
        assert annotated.startswith("== Summary")
        assert annotated.endswith("== Management")

    def test_annotate_without_marker_is_unchanged(self):
        assert annotate_marker("no marker", "Sato", "error") == "no marker"

    def test_format_marker(self):
        assert format_marker("") == "Target assignee: «»"
        assert format_marker("Sato", "error") == "Target assignee: «Sato» -> error"


class TestMoveEvent:
    """Test the copy-then-delete protocol."""

    def test_insert_precedes_delete(self, transfer, fake_calendar, linked_store):
        seed_event(fake_calendar, DESCRIPTION)
        record = linked_store.get_record(2)

        created = transfer.transfer(linked_store, record, "yamada@example.com", "evt-old", "sato@example.com", "Sato")

        ops = [op for op, _ in fake_calendar.calls]
        assert ops == ['get', 'insert', 'delete']
        calendar_id, body = fake_calendar.ops('insert')[0]
        assert calendar_id == "sato@example.com"
        assert body['guestsCanModify'] is True
        assert body['start']['dateTime'] == '2025-06-10T10:00:00+09:00'
        assert "Target assignee: «Sato» -> processed" in body['description']
        assert ("yamada@example.com", "evt-old") not in fake_calendar.events

        assert linked_store.cell(2, RecordField.CALENDAR_ID) == "sato@example.com"
        assert linked_store.cell(2, RecordField.EVENT_ID) == created.event_id
        assert linked_store.cell(2, RecordField.UPDATE_SOURCE) == "calendar-side"

    def test_insert_failure_leaves_record_and_source(self, transfer, fake_calendar, linked_store):
        seed_event(fake_calendar, DESCRIPTION)
        fake_calendar.fail['insert'] = CalendarServiceError("quota")

        with pytest.raises(TransferError):
            transfer.transfer(linked_store, linked_store.get_record(2), "yamada@example.com", "evt-old",
                              "sato@example.com", "Sato")

        assert fake_calendar.ops('delete') == []
        assert linked_store.writes == []

    def test_delete_failure_is_hard_failure(self, transfer, fake_calendar, linked_store):
        seed_event(fake_calendar, DESCRIPTION)
        fake_calendar.fail['delete'] = CalendarServiceError("backend error")

        with pytest.raises(TransferError) as exc_info:
            transfer.transfer(linked_store, linked_store.get_record(2), "yamada@example.com", "evt-old",
                              "sato@example.com", "Sato")

        message = str(exc_info.value)
        assert "sato@example.com" in message and "yamada@example.com" in message
        assert linked_store.cell(2, RecordField.EVENT_ID) == "evt-old"
        assert linked_store.writes == []


class TestRecordDrivenTransfer:
    """Test transfer_for_record."""

    def test_unresolved_assignee_raises(self, transfer, linked_store):
        linked_store.write_fields(2, {RecordField.ASSIGNEE: "Nobody"})
        with pytest.raises(AssigneeNotFoundError):
            transfer.transfer_for_record(linked_store, linked_store.get_record(2))

    def test_same_calendar_is_noop(self, transfer, fake_calendar, linked_store):
        assert transfer.transfer_for_record(linked_store, linked_store.get_record(2)) is None
        assert fake_calendar.calls == []

    def test_no_event_is_noop(self, transfer, make_store, base_row, fake_calendar):
        store = make_store(dict(base_row, **record_row(ASSIGNEE="Sato")))
        assert transfer.transfer_for_record(store, store.get_record(2)) is None
        assert fake_calendar.calls == []

    def test_moves_to_new_assignee(self, transfer, fake_calendar, linked_store):
        seed_event(fake_calendar, DESCRIPTION)
        linked_store.write_fields(2, {RecordField.ASSIGNEE: "Sato"})

        created = transfer.transfer_for_record(linked_store, linked_store.get_record(2))

        assert created is not None
        assert ("sato@example.com", created.event_id) in fake_calendar.events


class TestCalendarMarker:
    """Test handle_calendar_marker."""

    def handle(self, transfer, store, fake_calendar, description):
        seed_event(fake_calendar, description)
        event = api_event("evt-old", description=description)
        return transfer.handle_calendar_marker(store, store.get_record(2), event, "yamada@example.com")

    def test_no_pending_marker(self, transfer, fake_calendar, linked_store):
        result = self.handle(transfer, linked_store, fake_calendar, DESCRIPTION)
        assert result.outcome == MarkerOutcome.NONE
        assert fake_calendar.ops('patch') == []

    def test_already_processed_marker_is_ignored(self, transfer, fake_calendar, linked_store):
        result = self.handle(transfer, linked_store, fake_calendar,
                             DESCRIPTION.replace("«»", "«Sato» -> processed"))
        assert result.outcome == MarkerOutcome.NONE
        assert fake_calendar.ops('insert') == []

    def test_unresolved_name_annotates_error(self, transfer, fake_calendar, linked_store):
        result = self.handle(transfer, linked_store, fake_calendar, DESCRIPTION.replace("«»", "«Nobody»"))

        assert result.outcome == MarkerOutcome.UNRESOLVED
        assert not result.ok
        _, _, body = fake_calendar.ops('patch')[0]
        assert "«Nobody» -> error" in body['description']
        assert linked_store.writes == []

    def test_same_calendar_annotates_processed(self, transfer, fake_calendar, linked_store):
        result = self.handle(transfer, linked_store, fake_calendar, DESCRIPTION.replace("«»", "«Yamada»"))

        assert result.outcome == MarkerOutcome.ALREADY_PROCESSED
        assert result.ok
        _, _, body = fake_calendar.ops('patch')[0]
        assert "«Yamada» -> processed" in body['description']
        assert fake_calendar.ops('insert') == []

    def test_transfer_updates_record_and_notifies(self, transfer, fake_calendar, linked_store, notifier):
        result = self.handle(transfer, linked_store, fake_calendar, DESCRIPTION.replace("«»", "«Sato»"))

        assert result.transferred
        assert result.new_calendar_id == "sato@example.com"
        assert linked_store.cell(2, RecordField.ASSIGNEE) == "Sato"
        assert linked_store.cell(2, RecordField.STATUS) == "AssigneeChangedFromCalendar"
        assert linked_store.cell(2, RecordField.EVENT_ID) == result.new_event_id
        notifier.notify.assert_called_once()

    def test_transfer_failure_annotates_error(self, transfer, fake_calendar, linked_store, notifier):
        fake_calendar.fail['insert'] = CalendarServiceError("quota")

        result = self.handle(transfer, linked_store, fake_calendar, DESCRIPTION.replace("«»", "«Sato»"))

        assert result.outcome == MarkerOutcome.FAILED
        _, _, body = fake_calendar.ops('patch')[0]
        assert "«Sato» -> error" in body['description']
        assert linked_store.cell(2, RecordField.EVENT_ID) == "evt-old"
        notifier.notify.assert_not_called()

    def test_annotation_failure_is_reported_not_raised(self, transfer, fake_calendar, linked_store):
        fake_calendar.fail['patch'] = CalendarServiceError("forbidden")

        result = self.handle(transfer, linked_store, fake_calendar, DESCRIPTION.replace("«»", "«Nobody»"))

        assert result.outcome == MarkerOutcome.UNRESOLVED
        assert result.annotation_error == "forbidden"
