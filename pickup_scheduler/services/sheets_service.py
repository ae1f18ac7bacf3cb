# File: pickup_scheduler/services/sheets_service.py

import re
from typing import List, Dict, Any, Optional, Tuple
from googleapiclient.discovery import Resource

from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)

UPDATED_RANGE_ROW = re.compile(r"![A-Z]+(\d+)")


def column_letter(index: int) -> str:
    """Zero-based column index to A1 column letters (0 -> A, 26 -> AA)."""
    letters = ''
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def quote_sheet(sheet_name: str) -> str:
    """Quote a sheet name for use in an A1 range."""
    return "'" + sheet_name.replace("'", "''") + "'"


class GoogleSheetsService:
    """Handles all Google Sheets operations."""
    
    def __init__(self, sheets_service: Resource, spreadsheet_id: str):
        """
        Initialize sheets service.
        
        Args:
            sheets_service: Authenticated Google Sheets API resource
            spreadsheet_id: Spreadsheet holding the record and master sheets
        """
        self.service = sheets_service
        self.spreadsheet_id = spreadsheet_id
    
    def get_values(self, range_name: str) -> List[List[Any]]:
        """Fetch the formatted values of a range."""
        result = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=range_name
        ).execute()
        return result.get('values', [])
    
    def batch_update_values(self, data: List[Dict[str, Any]]) -> None:
        """
        Write several ranges in a single request.
        
        Args:
            data: List of {'range': 'Sheet!A1:B1', 'values': [[...]]}
        """
        if not data:
            return
        self.service.spreadsheets().values().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={'valueInputOption': 'USER_ENTERED', 'data': data}
        ).execute()
    
    def append_values(self, sheet_name: str, row_values: List[Any]) -> Optional[int]:
        """
        Append one row below the sheet's data.
        
        Returns:
            The 1-based row number written, if the API reported it
        """
        result = self.service.spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=f"{quote_sheet(sheet_name)}!A1",
            valueInputOption='USER_ENTERED',
            insertDataOption='INSERT_ROWS',
            body={'values': [row_values]}
        ).execute()
        updated_range = result.get('updates', {}).get('updatedRange', '')
        match = UPDATED_RANGE_ROW.search(updated_range)
        return int(match.group(1)) if match else None
    
    def get_table(self, sheet_name: str) -> Tuple[List[str], List[Dict[str, Any]]]:
        """
        Fetch a whole sheet as header-keyed rows.
        
        Returns:
            (headers, rows) where each row is {header: cell value}
        """
        logger.debug(f"Fetching sheet: {sheet_name}")
        values = self.get_values(quote_sheet(sheet_name))
        
        if not values:
            logger.warning(f"Sheet '{sheet_name}' is empty")
            return [], []
        
        headers = [str(h).strip() for h in values[0]]
        rows = []
        for row in values[1:]:
            # Pad short rows so every header has a value
            row_padded = list(row) + [''] * (len(headers) - len(row))
            rows.append({headers[j]: row_padded[j] for j in range(len(headers)) if headers[j]})
        
        logger.debug(f"Fetched {len(rows)} rows from '{sheet_name}'")
        return headers, rows
