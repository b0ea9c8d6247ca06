import os
import logging
from pathlib import Path
from screenlogger.local.supervisor.models import PidReadResult, PidReadStatus

log = logging.getLogger(__name__)

# Highest pid the Linux kernel can ever hand out (PID_MAX_LIMIT on 64-bit)
PID_MAX_LIMIT = 4 * 1024 * 1024


class PidFileStore:
    """
    Reads and writes the worker's pid to a single, well-known file.

    The file is the only record shared between the supervisor, the worker and
    any later supervisor process. Writes go to a temporary file that is then
    renamed over the target, so a reader sees either the old or the new value.
    The file is never deleted: a dead pid on record is history, not state.
    """

    def __init__(self, path: Path):
        """
        :param path: Location of the pid file.
        """
        self.path = Path(path)
        self.write_count = 0

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def write(self, pid: int) -> bool:
        """
        Atomically writes the pid to the pid file.

        :param pid: A positive process identifier.
        :return: True on success, False if the file could not be written.
        """
        if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
            raise ValueError(f"Refusing to record invalid pid: {pid!r}")

        temp_pid_path = self.temp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_pid_path.open("w") as f:
                f.write(f"{pid}\n")
                f.flush()
                os.fsync(f.fileno())
            temp_pid_path.replace(self.path)
            self.write_count += 1
            log.debug(f"Recorded worker PID {pid} in '{self.path}'.")
            return True
        except (IOError, OSError) as e:
            log.error(f"Failed to write PID file '{self.path}': {e}", exc_info=True)
            return False
        finally:
            try:
                temp_pid_path.unlink(missing_ok=True)
            except OSError:
                pass

    def read(self) -> PidReadResult:
        """
        Reads the pid file.

        ABSENT and CORRUPT are only distinguished for diagnostics; callers
        treat any result that is not OK as "no known pid".

        :return: A PidReadResult with the pid when the status is OK.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return PidReadResult(PidReadStatus.ABSENT)
        except (IOError, OSError) as e:
            log.warning(f"Could not read PID file '{self.path}': {e}")
            return PidReadResult(PidReadStatus.IO_FAILURE)

        try:
            pid = int(raw.decode("ascii").strip())
        except (UnicodeDecodeError, ValueError):
            log.debug(f"PID file '{self.path}' holds unparsable content {raw[:32]!r}.")
            return PidReadResult(PidReadStatus.CORRUPT)

        if not 0 < pid <= PID_MAX_LIMIT:
            log.debug(f"PID file '{self.path}' holds out-of-range pid {pid}.")
            return PidReadResult(PidReadStatus.CORRUPT)
        return PidReadResult(PidReadStatus.OK, pid)
