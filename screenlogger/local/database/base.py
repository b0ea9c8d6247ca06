import sqlite3
import logging
import threading
from pathlib import Path
from contextlib import contextmanager
from typing import List, Optional, Tuple, Any, Generator

log = logging.getLogger(__name__)


class BaseDBManager:
    """
    Shared SQLite plumbing for the event store and the log store.

    Both databases are written by one process and read by another: the
    detached worker inserts screen events and log records while the console
    lists, exports or tails them. Each call therefore opens its own
    short-lived connection (no connection outlives a method call) and
    relies on SQLite's file locking, the busy timeout and, where enabled,
    WAL mode so readers never block the worker's inserts.
    """

    BUSY_TIMEOUT = 10  # seconds a connection waits on another process's write lock

    def __init__(self, db_path: Path, lock: Optional[threading.Lock] = None, enable_wal: bool = False):
        """
        :param db_path: The SQLite file; its directory is created on first use.
        :param lock: Optional lock serializing threads of this process, e.g. a log flush thread.
        :param enable_wal: Switch the file to write-ahead logging on every connection.
        """
        self.db_path = Path(db_path)
        self.lock = lock
        self.enable_wal = enable_wal

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yields a fresh connection, holding `lock` (if any) for its lifetime."""
        if self.lock:
            self.lock.acquire()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path, timeout=self.BUSY_TIMEOUT)
            try:
                if self.enable_wal:
                    conn.execute("PRAGMA journal_mode=WAL;")
                yield conn
            finally:
                conn.close()
        finally:
            if self.lock:
                self.lock.release()

    def execute(self, sql: str, params: Optional[Tuple[Any, ...]] = None) -> Any:
        """
        Runs one statement and commits it.

        :return: Any rows the statement produced.
        :raises sqlite3.Error: After logging it; callers decide whether a failed write matters.
        """
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(sql, params or ())
                conn.commit()
                return cursor.fetchall()
        except sqlite3.Error as e:
            log.error(f"Database operation on '{self.db_path.name}' failed: {e}")
            raise

    def execute_many(self, sql: str, params: List[Tuple[Any, ...]]) -> None:
        """Runs one statement per parameter tuple inside a single transaction."""
        try:
            with self._get_connection() as conn:
                conn.executemany(sql, params)
                conn.commit()
        except sqlite3.Error as e:
            log.error(f"Batch operation on '{self.db_path.name}' failed ({len(params)} rows): {e}")
            raise

    def fetch_all(self, sql: str, params: Optional[Tuple[Any, ...]] = None) -> List[sqlite3.Row]:
        """Returns every row of a query as sqlite3.Row objects (index or column-name access)."""
        try:
            with self._get_connection() as conn:
                conn.row_factory = sqlite3.Row
                return conn.execute(sql, params or ()).fetchall()
        except sqlite3.Error as e:
            log.error(f"Query on '{self.db_path.name}' failed: {e}")
            raise

    def fetch_one(self, sql: str, params: Optional[Tuple[Any, ...]] = None) -> Optional[sqlite3.Row]:
        try:
            with self._get_connection() as conn:
                conn.row_factory = sqlite3.Row
                return conn.execute(sql, params or ()).fetchone()
        except sqlite3.Error as e:
            log.error(f"Query on '{self.db_path.name}' failed: {e}")
            raise
