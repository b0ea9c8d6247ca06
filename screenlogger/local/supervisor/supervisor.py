import os
import time
import fcntl
import psutil
import logging
import threading
from pathlib import Path
from contextlib import contextmanager
from typing import Generator, Optional
from screenlogger.local.supervisor import shutdown
from screenlogger.local.supervisor.audit import AuditLog
from screenlogger.local.supervisor.elevation import PrivilegeElevator, build_elevator
from screenlogger.local.supervisor.launcher import WorkerLauncher, python_worker_command
from screenlogger.local.supervisor.models import (
    ErrorKind, MutationLockTimeout, OperationOutcome, PidReadStatus,
    SupervisorResult, SupervisorState, WorkerIdentity, WorkerStatus,
)
from screenlogger.local.supervisor.persistence import PidFileStore
from screenlogger.local.supervisor.process_utils import LivenessProbe

log = logging.getLogger(__name__)

SENSOR_READ_FAILURE = -1


def read_sensor_value(path: Path) -> int:
    """
    Reads a single integer from a sysfs-style file.

    :return: The value, or SENSOR_READ_FAILURE if the file cannot be read or parsed.
    """
    try:
        return int(Path(path).read_text().strip())
    except (OSError, ValueError) as e:
        log.debug(f"Sensor read from '{path}' failed: {e}")
        return SENSOR_READ_FAILURE


class SupervisorFacade:
    """
    The control surface for the background worker.

    Queries (status, current_pid, is_running) re-derive everything from the
    pid file and the OS process table on every call and take no lock.
    Mutations (start, stop, ensure_running) are single-flight: a thread lock
    serializes them inside this process and an flock on `<pid file>.lock`
    serializes them across supervisor processes. A second mutation waits for
    the one in flight, up to `mutation_lock_timeout` seconds.

    No operation raises: every failure becomes a FAILED outcome plus an
    audit line.
    """

    def __init__(
        self,
        pid_store: PidFileStore,
        launcher: WorkerLauncher,
        audit: AuditLog,
        probe: Optional[LivenessProbe] = None,
        sensor_path: Path = Path("/sys/class/backlight/panel0-backlight/brightness"),
        store_path: Path = Path("screen_logger.db"),
        graceful_shutdown_timeout: float = 5,
        mutation_lock_timeout: float = 30,
    ) -> None:
        self.pid_store = pid_store
        self.launcher = launcher
        self.audit = audit
        self.probe = probe or launcher.probe
        self.sensor_path = Path(sensor_path)
        self.store_path = Path(store_path)
        self.graceful_shutdown_timeout = graceful_shutdown_timeout
        self.mutation_lock_timeout = mutation_lock_timeout

        self.lock_path = self.pid_store.path.with_name(self.pid_store.path.name + ".lock")
        self._thread_lock = threading.Lock()
        self._state = SupervisorState.UNKNOWN

    @classmethod
    def from_settings(cls, config=None, elevator: Optional[PrivilegeElevator] = None) -> "SupervisorFacade":
        """
        Builds a facade wired from the application settings.

        :param config: A settings object; defaults to app_globals.
        :param elevator: Overrides the elevator selected by ELEVATION_MODE.
        """
        if config is None:
            from screenlogger.local import app_globals
            config = app_globals

        pid_store = PidFileStore(config.PID_FILE_PATH)
        audit = AuditLog(config.AUDIT_LOG_PATH)
        probe = LivenessProbe()
        elevator = elevator or build_elevator(config.ELEVATION_MODE, config.SU_BINARY, config.ELEVATION_TIMEOUT)
        launcher = WorkerLauncher(
            pid_store=pid_store,
            probe=probe,
            elevator=elevator,
            audit=audit,
            command_builder=python_worker_command(config.PYTHON_EXECUTABLE, config.WORKER_MODULE, config.AUDIT_LOG_PATH),
            oom_score_adj=config.OOM_SCORE_ADJ,
            discovery_retries=config.DISCOVERY_RETRIES,
            discovery_interval=config.DISCOVERY_INTERVAL,
            cwd=config.BASE_DIR,
        )
        return cls(
            pid_store=pid_store,
            launcher=launcher,
            audit=audit,
            probe=probe,
            sensor_path=config.SENSOR_PATH,
            store_path=config.EVENT_DB_PATH,
            graceful_shutdown_timeout=config.GRACEFUL_SHUTDOWN_TIMEOUT,
            mutation_lock_timeout=config.MUTATION_LOCK_TIMEOUT,
        )

    #* --- Queries ---
    @property
    def state(self) -> SupervisorState:
        """The last state this facade went through. Informational, never authoritative."""
        return self._state

    def current_identity(self) -> Optional[WorkerIdentity]:
        record = self.pid_store.read()
        if record.found and self.probe.is_alive(record.pid):
            return WorkerIdentity(record.pid)
        return None

    def current_pid(self) -> Optional[int]:
        identity = self.current_identity()
        return identity.pid if identity else None

    def is_running(self) -> bool:
        return self.current_identity() is not None

    def status(self) -> WorkerStatus:
        """Returns Running(pid), Stopped, or Unknown when the pid file could not be read."""
        record = self.pid_store.read()
        if record.status is PidReadStatus.IO_FAILURE:
            return WorkerStatus(SupervisorState.UNKNOWN)
        if record.found and self.probe.is_alive(record.pid):
            return WorkerStatus(SupervisorState.RUNNING, record.pid)
        return WorkerStatus(SupervisorState.STOPPED)

    def read_sensor(self, path: Optional[Path] = None) -> int:
        return read_sensor_value(path or self.sensor_path)

    #* --- Single-flight ---
    @contextmanager
    def _mutation(self) -> Generator[None, None, None]:
        deadline = time.monotonic() + self.mutation_lock_timeout
        if not self._thread_lock.acquire(timeout=self.mutation_lock_timeout):
            raise MutationLockTimeout("another start/stop is still in progress")
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
            try:
                while True:
                    try:
                        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                        break
                    except BlockingIOError:
                        if time.monotonic() >= deadline:
                            raise MutationLockTimeout("another supervisor process holds the mutation lock")
                        time.sleep(0.05)
                try:
                    yield
                finally:
                    fcntl.flock(fd, fcntl.LOCK_UN)
            finally:
                os.close(fd)
        finally:
            self._thread_lock.release()

    def _fail(self, operation: str, error: ErrorKind, reason: str) -> OperationOutcome:
        self.audit.append(f"{operation} failed [{error.value}]: {reason}")
        return OperationOutcome.failed(error, reason)

    #* --- Mutations ---
    def start(self) -> OperationOutcome:
        """Starts the worker. Returns STARTED, ALREADY_RUNNING or FAILED."""
        try:
            with self._mutation():
                return self._start_locked(cause="start requested")
        except MutationLockTimeout as e:
            return self._fail("Start", e.kind, str(e))
        except Exception as e:
            log.critical(f"Unexpected error while starting the worker: {e}", exc_info=True)
            self._state = SupervisorState.UNKNOWN
            return self._fail("Start", ErrorKind.IO_FAILURE, f"unexpected error: {e}")

    def ensure_running(self) -> OperationOutcome:
        """Idempotent start for boot hooks and periodic checks."""
        try:
            with self._mutation():
                return self._start_locked(cause="ensure-running check")
        except MutationLockTimeout as e:
            return self._fail("Ensure-running", e.kind, str(e))
        except Exception as e:
            log.critical(f"Unexpected error while ensuring the worker runs: {e}", exc_info=True)
            self._state = SupervisorState.UNKNOWN
            return self._fail("Ensure-running", ErrorKind.IO_FAILURE, f"unexpected error: {e}")

    def _start_locked(self, cause: str) -> OperationOutcome:
        running_pid = self.launcher.find_running_pid()
        if running_pid is not None:
            self._state = SupervisorState.RUNNING
            return OperationOutcome(SupervisorResult.ALREADY_RUNNING, pid=running_pid)

        self._state = SupervisorState.STARTING
        self.audit.append(f"Starting worker ({cause}); sensor={self.sensor_path} store={self.store_path}")
        outcome = self.launcher.launch(self.sensor_path, self.store_path)

        if outcome.result is SupervisorResult.STARTED:
            self._state = SupervisorState.RUNNING
            self.audit.append(f"Worker started, PID {outcome.pid}")
        elif outcome.result is SupervisorResult.ALREADY_RUNNING:
            self._state = SupervisorState.RUNNING
            self.audit.append(f"Worker already running, PID {outcome.pid}")
        else:
            self._state = SupervisorState.STOPPED
            self.audit.append(f"Worker start failed [{outcome.error.value}]: {outcome.reason}")
        return outcome

    def stop(self) -> OperationOutcome:
        """Stops the worker. Returns STOPPED, NOT_RUNNING or FAILED. The pid file is kept."""
        try:
            with self._mutation():
                return self._stop_locked()
        except MutationLockTimeout as e:
            return self._fail("Stop", e.kind, str(e))
        except Exception as e:
            log.critical(f"Unexpected error while stopping the worker: {e}", exc_info=True)
            self._state = SupervisorState.UNKNOWN
            return self._fail("Stop", ErrorKind.IO_FAILURE, f"unexpected error: {e}")

    def _stop_locked(self) -> OperationOutcome:
        pid = self.current_pid()
        if pid is None:
            self._state = SupervisorState.STOPPED
            log.info("No running worker found to stop.")
            return OperationOutcome(SupervisorResult.NOT_RUNNING)

        self._state = SupervisorState.STOPPING
        self.audit.append(f"Stopping worker PID {pid} (stop requested)")
        try:
            gone = shutdown.terminate_worker(pid, self.graceful_shutdown_timeout)
        except psutil.AccessDenied as e:
            self._state = SupervisorState.RUNNING
            return self._fail("Stop", ErrorKind.DENIED, f"not allowed to signal PID {pid}: {e}")

        if not gone:
            self._state = SupervisorState.RUNNING
            return self._fail("Stop", ErrorKind.TIMED_OUT, f"PID {pid} still alive after SIGKILL")

        self._state = SupervisorState.STOPPED
        self.audit.append(f"Worker PID {pid} stopped")
        log.info(f"Worker PID {pid} stopped.")
        return OperationOutcome(SupervisorResult.STOPPED, pid=pid)
