import sys
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Optional, List, Dict, Any
from screenlogger.local.database import LogDBManager


class SQLiteHandler(logging.Handler):
    """
    A custom logging handler that writes logs to a SQLite database
    in batches using a background thread.
    """
    def __init__(self, db_path: Path, buffer_size: int = 100, flush_interval: float = 5):
        """
        Initializes the SQLite handler.

        :param db_path: The path to the SQLite database file.
        :param buffer_size: Flush as soon as this many records are buffered.
        :param flush_interval: Seconds between periodic flushes.
        """
        super().__init__()
        self.db_path = db_path
        self.buffer_size = buffer_size
        self.flush_interval = flush_interval
        self.log_buffer: List[Dict[str, Any]] = []
        self.buffer_lock = threading.Lock()
        self.stop_event = threading.Event()
        self.logDB = LogDBManager(self.db_path)
        self.logDB.initialize_database()
        self.flush_thread: Optional[threading.Thread] = threading.Thread(
            target=self._periodic_flush, daemon=True, name="SQLiteFlushThread"
        )
        self.flush_thread.start()

    def _periodic_flush(self) -> None:
        """
        Periodically flushes the log buffer. This runs in a background thread.
        """
        while not self.stop_event.wait(self.flush_interval):
            self.flush()

    def emit(self, record: logging.LogRecord) -> None:
        """
        Adds a log record to the internal buffer for batch writing.

        :param record: The log record to be processed.
        """
        log_entry = {
            "timestamp": record.created,
            "level": record.levelname,
            "module": record.module,
            "funcName": record.funcName,
            "lineno": record.lineno,
            "message": record.getMessage()
        }
        with self.buffer_lock:
            self.log_buffer.append(log_entry)
            if len(self.log_buffer) < self.buffer_size:
                return
            entries_to_write = self._drain_locked()
        self._write(entries_to_write)

    def _drain_locked(self) -> List[Dict[str, Any]]:
        entries = list(self.log_buffer)
        self.log_buffer.clear()
        return entries

    def _write(self, entries: List[Dict[str, Any]]) -> None:
        """Writes entries outside the buffer lock. A failing database never breaks logging."""
        if not entries:
            return
        try:
            self.logDB.insert_log_batch(entries)
        except sqlite3.Error as e:
            print(f"Error writing logs to DB: {e}. Log entries: {len(entries)}", file=sys.stderr)

    def flush(self) -> None:
        """Public method to trigger a manual flush of the log buffer."""
        with self.buffer_lock:
            entries_to_write = self._drain_locked()
        self._write(entries_to_write)

    def close(self) -> None:
        """
        Shuts down the handler, ensuring the flush thread is joined and buffers are flushed.
        """
        self.stop_event.set()
        if self.flush_thread and self.flush_thread.is_alive():
            self.flush_thread.join()
        self.flush()
        super().close()
