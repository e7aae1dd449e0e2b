"""Append-only SQLite log of door events."""
import asyncio
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

from door_sensor.core.events import EventRecord, UNIX_EPOCH

logger = logging.getLogger(__name__)

CREATE_LOG_TABLE = """
CREATE TABLE IF NOT EXISTS log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event TEXT NOT NULL,
    event_time TEXT NOT NULL,
    event_time_unix INTEGER NOT NULL,
    phone_connected INTEGER,
    created_at TEXT NOT NULL
)
"""
CREATE_EVENT_TIME_INDEX = "CREATE INDEX IF NOT EXISTS log_event_time_unix ON log (event_time_unix)"
DROP_LOG_TABLE = "DROP TABLE IF EXISTS log"


class EventLog:
    """
    Stores one row per door transition.

    Rows are only ever inserted. Each call opens its own connection inside a worker
    thread so the event loop never blocks on disk I/O.
    """

    def __init__(self, db_path: str, tz: ZoneInfo | None = None):
        self.db_path = Path(db_path)
        self.tz = tz

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    async def initialize(self, force: bool = False) -> None:
        """Create the schema. With ``force`` the existing table and its rows are dropped first."""
        await asyncio.to_thread(self._initialize_sync, force)
        logger.info(f"Event log ready at {self.db_path} ({force=})")

    def _initialize_sync(self, force: bool) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                if force:
                    conn.execute(DROP_LOG_TABLE)
                conn.execute(CREATE_LOG_TABLE)
                conn.execute(CREATE_EVENT_TIME_INDEX)
        finally:
            conn.close()

    async def append(self, record: EventRecord) -> None:
        """Persist one record. Raises sqlite3.Error on failure."""
        await asyncio.to_thread(self._append_sync, record)
        logger.debug(f"Logged {record.event} at {record.occurred_at.isoformat()}")

    def _append_sync(self, record: EventRecord) -> None:
        event_time = record.occurred_at.astimezone(self.tz) if self.tz else record.occurred_at
        phone_connected = None if record.phone_connected is None else int(record.phone_connected)
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO log (event, event_time, event_time_unix, phone_connected, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        record.event,
                        event_time.isoformat(sep=" ", timespec="seconds"),
                        record.occurred_at_unix_ms,
                        phone_connected,
                        datetime.now(timezone.utc).isoformat(sep=" ", timespec="seconds"),
                    ),
                )
        finally:
            conn.close()

    async def latest_event_time(self) -> datetime | None:
        """Instant of the most recent logged event, None when the log is empty."""
        unix_ms = await asyncio.to_thread(self._latest_event_time_sync)
        if unix_ms is None:
            return None
        instant = UNIX_EPOCH + timedelta(milliseconds=unix_ms)
        return instant.astimezone(self.tz) if self.tz else instant

    def _latest_event_time_sync(self) -> int | None:
        conn = self._connect()
        try:
            row = conn.execute("SELECT MAX(event_time_unix) FROM log").fetchone()
        finally:
            conn.close()
        return row[0] if row else None
