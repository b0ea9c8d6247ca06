import os
import re
import time
import logging
from pathlib import Path
from collections import namedtuple
from typing import List

AuditLogEntry = namedtuple('AuditLogEntry', ['timestamp', 'message'])
log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_LINE_PATTERN = re.compile(r"^\[(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\] (.*)$")


class AuditLog:
    """
    Append-only text log of lifecycle events, shared by every process.

    Each line is `[yyyy-MM-dd HH:mm:ss] message` and is written with a single
    write on an O_APPEND descriptor, so lines from the supervisor and the
    worker never interleave.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, message: str) -> None:
        line = f"[{time.strftime(TIMESTAMP_FORMAT)}] {' '.join(str(message).splitlines())}\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
            try:
                os.write(fd, line.encode("utf-8"))
            finally:
                os.close(fd)
        except OSError as e:
            log.error(f"Failed to append to audit log '{self.path}': {e}")

    def read_all(self) -> str:
        """Returns the full log, or an empty string if it does not exist yet."""
        try:
            return self.path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return ""
        except OSError as e:
            log.error(f"Failed to read audit log '{self.path}': {e}")
            return ""

    def clear(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w"):
                pass
            return True
        except OSError as e:
            log.error(f"Failed to clear audit log '{self.path}': {e}")
            return False

    def entries(self) -> List[AuditLogEntry]:
        entries = []
        for line in self.read_all().splitlines():
            match = _LINE_PATTERN.match(line)
            if match:
                entries.append(AuditLogEntry(*match.groups()))
        return entries


class AuditLogHandler(logging.Handler):
    """Forwards log records to an AuditLog, one line per record."""

    def __init__(self, audit_log: AuditLog):
        super().__init__()
        self.audit_log = audit_log

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.audit_log.append(record.getMessage())
        except Exception:
            self.handleError(record)
