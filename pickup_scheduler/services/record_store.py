# File: pickup_scheduler/services/record_store.py
"""
Record Store Adapter.

The boundary is string-keyed (sheet headers); `RecordStore` adds typed
helpers on top so the processors work with `Record` and `RecordField`.
"""

import datetime
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pickup_scheduler.models import (
    Record, RecordField, SheetTarget, UpdateSource, record_from_row, nz
)
from pickup_scheduler.models.common import format_cell
from pickup_scheduler.services.sheets_service import GoogleSheetsService, column_letter, quote_sheet
from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

FieldName = Union[RecordField, str]


def _header(name: FieldName) -> str:
    return name.value if isinstance(name, RecordField) else str(name)


class RecordStore(ABC):
    """Tabular record storage keyed by 1-based row number (row 1 is the header)."""

    def __init__(self, target: SheetTarget, updater_id: str = 'pickup-scheduler'):
        self.target = target
        self.updater_id = updater_id

    @property
    def name(self) -> str:
        return self.target.name

    @property
    def channel(self) -> str:
        return self.target.channel

    # ---- adapter interface ----

    @abstractmethod
    def read_field(self, row: int, name: FieldName) -> Any:
        """Cell value, '' when the row or column does not exist."""

    @abstractmethod
    def write_fields(self, row: int, values: Mapping[FieldName, Any]) -> None:
        """Write several cells of one row as one update. Unknown headers are skipped."""

    @abstractmethod
    def append_row(self, values: Mapping[FieldName, Any]) -> int:
        """Append a row and return its row number."""

    @abstractmethod
    def iter_rows(self) -> Iterable[Tuple[int, Dict[str, Any]]]:
        """(row number, {header: value}) for every data row, in store order."""

    def read_live_field(self, row: int, name: FieldName) -> Any:
        """Like read_field, but bypasses any cached snapshot of the row."""
        return self.read_field(row, name)

    def find_row_by_field_value(self, name: FieldName, value: Any) -> Optional[int]:
        header = _header(name)
        target = nz(value)
        for row, values in self.iter_rows():
            if nz(values.get(header)) == target:
                return row
        return None

    def all_rows_with_field(self, name: FieldName) -> List[Tuple[int, Any]]:
        """Rows whose `name` cell is non-empty, with that value."""
        header = _header(name)
        return [(row, values[header]) for row, values in self.iter_rows() if nz(values.get(header))]

    # ---- typed helpers ----

    def records(self) -> List[Record]:
        return [record_from_row(row, values) for row, values in self.iter_rows()]

    def get_record(self, row: int) -> Record:
        for r, values in self.iter_rows():
            if r == row:
                return record_from_row(r, values)
        raise KeyError(f"Row {row} not found in sheet '{self.name}'")

    def update_record(
        self,
        row: int,
        updates: Mapping[RecordField, Any],
        source: Optional[UpdateSource] = None,
        at: Optional[datetime.datetime] = None
    ) -> None:
        """
        Write typed values to a row.

        When `source` is given the last-update metadata (time, updater,
        source) is stamped in the same write.
        """
        values = {f.value: format_cell(v) for f, v in updates.items()}
        if source is not None:
            stamp = at or datetime.datetime.now()
            values.setdefault(RecordField.UPDATED_AT.value, format_cell(stamp))
            values.setdefault(RecordField.UPDATED_BY.value, self.updater_id)
            values.setdefault(RecordField.UPDATE_SOURCE.value, source.value)
        self.write_fields(row, values)


class SheetRecordStore(RecordStore):
    """RecordStore over one sheet of a Google spreadsheet."""

    def __init__(self, sheets: GoogleSheetsService, target: SheetTarget, updater_id: str = 'pickup-scheduler'):
        super().__init__(target, updater_id)
        self.sheets = sheets
        self._headers: Optional[List[str]] = None
        self._rows: Optional[List[Dict[str, Any]]] = None

    def refresh(self) -> None:
        """Drop cached sheet contents; the next access re-reads the sheet."""
        self._headers = None
        self._rows = None

    def _load(self) -> None:
        if self._headers is None:
            self._headers, self._rows = self.sheets.get_table(self.name)

    def _column_map(self) -> Dict[str, int]:
        self._load()
        mapping = {}
        for idx, header in enumerate(self._headers):
            if header and header not in mapping:
                mapping[header] = idx
        return mapping

    def read_field(self, row: int, name: FieldName) -> Any:
        self._load()
        index = row - 2
        if index < 0 or index >= len(self._rows):
            return ''
        return self._rows[index].get(_header(name), '')

    def read_live_field(self, row: int, name: FieldName) -> Any:
        """Re-fetch one row from the sheet and return a cell of it."""
        columns = self._column_map()
        header = _header(name)
        if row < 2 or header not in columns:
            return ''
        last = column_letter(len(self._headers) - 1)
        values = self.sheets.get_values(f"{quote_sheet(self.name)}!A{row}:{last}{row}")
        cells = list(values[0]) if values else []
        cells += [''] * (len(self._headers) - len(cells))

        index = row - 2
        if 0 <= index < len(self._rows):
            for h, i in columns.items():
                self._rows[index][h] = cells[i]
        return cells[columns[header]]

    def write_fields(self, row: int, values: Mapping[FieldName, Any]) -> None:
        columns = self._column_map()
        updates = []
        for name, value in values.items():
            header = _header(name)
            if header not in columns:
                logger.debug(f"Sheet '{self.name}' has no column '{header}', skipping")
                continue
            updates.append((columns[header], header, value))
        if not updates:
            return
        updates.sort()

        # Contiguous columns go out as one range; all ranges in one batch request
        data = []
        segment = [updates[0]]
        for item in updates[1:]:
            if item[0] == segment[-1][0] + 1:
                segment.append(item)
            else:
                data.append(self._range_payload(row, segment))
                segment = [item]
        data.append(self._range_payload(row, segment))
        self.sheets.batch_update_values(data)

        index = row - 2
        if 0 <= index < len(self._rows):
            for _, header, value in updates:
                self._rows[index][header] = value

    def _range_payload(self, row: int, segment: List[Tuple[int, str, Any]]) -> Dict[str, Any]:
        start = column_letter(segment[0][0])
        end = column_letter(segment[-1][0])
        return {
            'range': f"{quote_sheet(self.name)}!{start}{row}:{end}{row}",
            'values': [[value for _, _, value in segment]],
        }

    def append_row(self, values: Mapping[FieldName, Any]) -> int:
        self._load()
        by_header = {_header(k): v for k, v in values.items()}
        row_values = [format_cell(by_header.get(h, '')) for h in self._headers]
        row = self.sheets.append_values(self.name, row_values)
        if row is None:
            row = len(self._rows) + 2
        self.refresh()
        return row

    def iter_rows(self) -> Iterable[Tuple[int, Dict[str, Any]]]:
        self._load()
        for index, values in enumerate(self._rows):
            yield index + 2, values
