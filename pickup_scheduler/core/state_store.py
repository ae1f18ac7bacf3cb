# File: pickup_scheduler/core/state_store.py

import sqlite3
import datetime
from pathlib import Path
from typing import Optional

from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)


class PropertyStore:
    """
    Durable key-value store backed by SQLite.

    Holds state that must survive across invocations, such as the
    per-calendar sync tokens of the sync engine.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _get_db_connection(self):
        return sqlite3.connect(self.db_path)

    def _ensure_schema(self):
        conn = self._get_db_connection()
        try:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS Properties ("
                " key TEXT PRIMARY KEY,"
                " value TEXT NOT NULL,"
                " updated_at TEXT NOT NULL)"
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        conn = self._get_db_connection()
        try:
            row = conn.execute("SELECT value FROM Properties WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.datetime.now(datetime.timezone.utc).isoformat()
        conn = self._get_db_connection()
        try:
            conn.execute(
                "INSERT INTO Properties (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (key, value, now)
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug(f"Stored property {key}")

    def delete(self, key: str) -> None:
        conn = self._get_db_connection()
        try:
            conn.execute("DELETE FROM Properties WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()
        logger.debug(f"Deleted property {key}")
