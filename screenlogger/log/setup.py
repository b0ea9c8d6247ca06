import sys
import logging
from pathlib import Path
from typing import Optional

from screenlogger.log.handler import SQLiteHandler
from screenlogger.local.supervisor.audit import AuditLog, AuditLogHandler

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """The console formatter used by every ScreenLogger process."""

    def __init__(self):
        super().__init__(LOG_FORMAT)


def setup_logging(
    console_level: int = logging.INFO,
    log_db_path: Optional[Path] = None,
    audit_log: Optional[AuditLog] = None,
    console: bool = True,
) -> None:
    """
    Configures the root logger for the application.
    This sets up handlers for console, SQLite and optionally the audit log,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param log_db_path: The SQLite log database; defaults to the LOG_DB_PATH setting.
    :param audit_log: When given, INFO and above are also appended to this audit log.
    :param console: Whether to log to stdout. The detached worker has no console.
    """
    if log_db_path is None:
        from screenlogger.local import app_globals
        log_db_path = app_globals.LOG_DB_PATH

    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # --- Console Handler ---
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(MainFormatter())
        root_logger.addHandler(console_handler)

    # --- SQLite Handler (always enabled for all levels) ---
    try:
        Path(log_db_path).parent.mkdir(parents=True, exist_ok=True)
        sqlite_handler = SQLiteHandler(db_path=Path(log_db_path))
        sqlite_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(sqlite_handler)
    except Exception as e:
        root_logger.error(f"Failed to initialize SQLite logging handler: {e}. Logging to DB will be disabled.")

    # --- Audit Log Handler (worker process) ---
    if audit_log is not None:
        audit_handler = AuditLogHandler(audit_log)
        audit_handler.setLevel(logging.INFO)
        root_logger.addHandler(audit_handler)
