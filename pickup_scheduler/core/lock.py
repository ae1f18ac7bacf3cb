# File: pickup_scheduler/core/lock.py
"""
Deployment-wide mutual exclusion for the task processor and the sync engine.

The lock is an exclusive SQLite transaction on a dedicated database file.
Any process pointing at the same file contends for the same lock; a process
that dies releases it when its connection goes away.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from pickup_scheduler.utils.logger import setup_logger

logger = setup_logger(__name__)


class ScriptLock:
    """Non-blocking, skip-and-retry lock shared by every job entry point."""

    def __init__(self, db_path: Path, timeout: float = 1.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def held(self) -> bool:
        return self._conn is not None

    def try_acquire(self) -> bool:
        """
        Try to take the lock, waiting at most `timeout` seconds.

        Returns:
            True if the lock is now held by this instance
        """
        if self._conn is not None:
            return True
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout, isolation_level=None)
        try:
            conn.execute("BEGIN EXCLUSIVE")
        except sqlite3.OperationalError as e:
            conn.close()
            logger.debug(f"Lock {self.db_path} busy: {e}")
            return False
        self._conn = conn
        return True

    def release(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.execute("ROLLBACK")
        finally:
            self._conn.close()
            self._conn = None

    @contextmanager
    def acquire(self) -> Iterator[bool]:
        """
        Context manager yielding whether the lock was obtained.

        Example:
            >>> with lock.acquire() as acquired:
            ...     if not acquired:
            ...         return
        """
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
