import time
import sqlite3
import logging
from pathlib import Path
from collections import namedtuple
from typing import List, Optional
from screenlogger.local.database.base import BaseDBManager

ScreenEvent = namedtuple('ScreenEvent', ['id', 'event_type', 'timestamp'])
log = logging.getLogger(__name__)

EVENT_SCREEN_ON = "SCREEN_ON"
EVENT_SCREEN_OFF = "SCREEN_OFF"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ScreenEventDBManager(BaseDBManager):
    """
    Stores screen on/off events written by the worker.

    Timestamps are local-time `yyyy-MM-dd HH:mm:ss` strings, which sort
    chronologically as text.
    """

    def __init__(self, db_path: Path):
        super().__init__(db_path, lock=None, enable_wal=True)

    def initialize_database(self) -> None:
        """Ensures the events table exists."""
        try:
            self.execute('''
                CREATE TABLE IF NOT EXISTS screen_events (
                    _id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_type TEXT NOT NULL,
                    timestamp TEXT NOT NULL
                )
            ''')
            self.execute("CREATE INDEX IF NOT EXISTS idx_screen_events_ts ON screen_events (timestamp)")
            log.debug("Event database tables created/verified.")
        except sqlite3.Error as e:
            log.critical(f"Could not create event database tables: {e}", exc_info=True)
            raise

    def insert_event(self, event_type: str, timestamp: Optional[str] = None) -> None:
        """
        Inserts a single screen event.

        :param event_type: SCREEN_ON or SCREEN_OFF.
        :param timestamp: Event time; defaults to now.
        """
        timestamp = timestamp or time.strftime(TIMESTAMP_FORMAT)
        self.execute(
            "INSERT INTO screen_events (event_type, timestamp) VALUES (?, ?)",
            (event_type, timestamp)
        )
        log.debug(f"Inserted screen event: {event_type} at {timestamp}")

    def recent_events(self, hours: int = 12) -> List[ScreenEvent]:
        """Returns events of the last `hours` hours, newest first."""
        since = time.strftime(TIMESTAMP_FORMAT, time.localtime(time.time() - hours * 3600))
        rows = self.fetch_all(
            "SELECT _id, event_type, timestamp FROM screen_events WHERE timestamp >= ? "
            "ORDER BY timestamp DESC, _id DESC",
            (since,)
        )
        return [ScreenEvent(*row) for row in rows]

    def last_events(self, limit: int = 30) -> List[ScreenEvent]:
        """Returns the last `limit` events, oldest first."""
        rows = self.fetch_all(
            "SELECT _id, event_type, timestamp FROM screen_events ORDER BY timestamp DESC, _id DESC LIMIT ?",
            (limit,)
        )
        return [ScreenEvent(*row) for row in reversed(rows)]

    def last_event_time(self, event_type: str) -> Optional[str]:
        row = self.fetch_one(
            "SELECT timestamp FROM screen_events WHERE event_type = ? ORDER BY timestamp DESC, _id DESC LIMIT 1",
            (event_type,)
        )
        return row["timestamp"] if row else None

    def delete_all_events(self) -> None:
        self.execute("DELETE FROM screen_events")
        log.info("All screen events deleted.")
