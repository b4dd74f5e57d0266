"""
Event Log Store

Append-only SQLite log of engine events. Writes are handed to a single
background worker so that the frame loop never waits on disk; reads run on
the caller's thread.
"""

import os
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from ..core.events import Event
from ..utils.logger import get_logger

logger = get_logger(__name__)


CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS log_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp_ms INTEGER NOT NULL,
    type TEXT NOT NULL,
    message TEXT,
    duration_ms INTEGER
)
"""


@dataclass(frozen=True)
class LogRecord:
    """One persisted row of the log_events table."""
    id: int
    timestamp_ms: int
    type: str
    message: Optional[str] = None
    duration_ms: Optional[int] = None


def format_record(record: LogRecord) -> str:
    """Render a record the way the log viewer lists it."""
    time_text = datetime.fromtimestamp(record.timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
    text = record.type
    if record.message:
        text += f" - {record.message}"
    if record.duration_ms is not None:
        text += f" ({record.duration_ms}ms)"
    return f"{time_text}  {text}"


class EventLogStore:
    """SQLite-backed event sink with fire-and-forget appends."""

    def __init__(self, database_path: str = "data/screeneye.db"):
        """
        Open (or create) the event database.

        Args:
            database_path: SQLite file path; ":memory:" is accepted
        """
        self.database_path = database_path
        directory = os.path.dirname(database_path)
        if directory and database_path != ":memory:":
            os.makedirs(directory, exist_ok=True)

        self._conn = sqlite3.connect(database_path, check_same_thread=False)
        self._conn_lock = threading.Lock()
        with self._conn_lock:
            self._conn.execute(CREATE_TABLE_SQL)
            self._conn.commit()

        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="event-log"
        )
        self.failed_writes = 0

        logger.info(f"Event log opened: {database_path}")

    def __call__(self, event: Event) -> None:
        self.append(event)

    def append(self, event: Event) -> Optional[Future]:
        """
        Queue an event for insertion.

        Returns:
            The pending write, or None when the store is already closed
        """
        executor = self._executor
        try:
            if executor is None:
                raise RuntimeError("event log is closed")
            return executor.submit(self._insert, event)
        except RuntimeError as e:
            logger.warning(f"Dropping {event.kind.value}: {e}")
            return None

    def _insert(self, event: Event) -> None:
        try:
            with self._conn_lock:
                self._conn.execute(
                    "INSERT INTO log_events (timestamp_ms, type, message, duration_ms) VALUES (?, ?, ?, ?)",
                    (event.timestamp_ms, event.kind.value, event.message, event.duration_ms),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            self.failed_writes += 1
            logger.log_error_with_context(e, f"event log insert ({event.kind.value})")

    def recent(self, limit: int = 200) -> List[LogRecord]:
        """Most recent records, newest first."""
        with self._conn_lock:
            rows = self._conn.execute(
                "SELECT id, timestamp_ms, type, message, duration_ms FROM log_events "
                "ORDER BY timestamp_ms DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [LogRecord(*row) for row in rows]

    def flush(self) -> None:
        """Block until every queued write has been applied."""
        executor = self._executor
        if executor is not None:
            executor.submit(lambda: None).result()

    def close(self) -> None:
        """Drain pending writes and close the database. Safe to call twice."""
        executor = self._executor
        if executor is None:
            return
        self._executor = None
        executor.shutdown(wait=True)
        with self._conn_lock:
            self._conn.close()
        logger.info(f"Event log closed: {self.database_path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
