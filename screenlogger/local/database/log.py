import time
import sqlite3
import logging
from pathlib import Path
from collections import namedtuple
from typing import List, Dict, Any
from screenlogger.local.database.base import BaseDBManager

LogEntry = namedtuple('LogEntry', ['timestamp', 'level', 'module', 'message'])
log = logging.getLogger(__name__)


class LogDBManager(BaseDBManager):
    """
    Manages all interactions with the application's logging SQLite database.
    """

    def __init__(self, db_path: Path):
        """
        Initializes the LogDBManager.

        :param db_path: The path to the logging SQLite database file.
        """
        super().__init__(db_path, lock=None, enable_wal=True)

    def initialize_database(self) -> None:
        """
        Ensures the log table exists in the database.
        """
        try:
            self.execute('''
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL,
                    level TEXT,
                    module TEXT,
                    funcName TEXT,
                    lineno INTEGER,
                    message TEXT
                )
            ''')
            log.debug("Log database tables created/verified.")
        except sqlite3.Error as e:
            log.critical(f"Could not create log database tables: {e}", exc_info=True)
            raise

    def insert_log_batch(self, log_entries: List[Dict[str, Any]]) -> None:
        """
        Inserts multiple log entries in a single transaction.

        :param log_entries: Dicts with keys timestamp, level, module, funcName, lineno, message.
        """
        if not log_entries:
            return

        params = [(
            entry['timestamp'],
            entry['level'],
            entry['module'],
            entry['funcName'],
            entry['lineno'],
            entry['message']
        ) for entry in log_entries]

        self.execute_many(
            '''INSERT INTO logs (timestamp, level, module, funcName, lineno, message)
               VALUES (?, ?, ?, ?, ?, ?)''',
            params
        )

    def fetch_last_entries(self, limit: int, include_debug: bool = False) -> List[LogEntry]:
        """
        Fetches the most recent N log entries from the database.

        :param limit: The maximum number of log entries to retrieve.
        :param include_debug: Whether DEBUG records are included.
        :return list: A list of LogEntry namedtuples, oldest first.
        """
        entries = []
        level_filter = "" if include_debug else "WHERE level != 'DEBUG'"
        try:
            rows = self.fetch_all(
                f"SELECT timestamp, level, module, message FROM logs {level_filter} ORDER BY id DESC LIMIT ?",
                (limit,)
            )
            # Reverse the results to show oldest first.
            for row in reversed(rows):
                dt = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(row['timestamp']))
                entries.append(LogEntry(
                    timestamp=row['timestamp'], level=row['level'], module=row['module'],
                    message=f"{dt} - {row['level']:<8} - [{row['module']}] - {row['message']}"
                ))
        except sqlite3.Error as e:
            log.error(f"Failed to fetch log entries from database: {e}")
        return entries
