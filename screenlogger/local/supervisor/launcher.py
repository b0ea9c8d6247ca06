import time
import psutil
import logging
from pathlib import Path
from typing import Callable, List, Optional
from screenlogger.local.supervisor.audit import AuditLog
from screenlogger.local.supervisor.elevation import PrivilegeElevator, lower_eviction_priority
from screenlogger.local.supervisor.models import (
    DiscoveryError, ErrorKind, OperationOutcome, SupervisorResult,
)
from screenlogger.local.supervisor.persistence import PidFileStore
from screenlogger.local.supervisor.process_utils import LivenessProbe, spawn_detached, get_worker_args
from screenlogger.local.supervisor.shutdown import terminate_worker

log = logging.getLogger(__name__)

CommandBuilder = Callable[[Path, Path], List[str]]


class WorkerLauncher:
    """
    Starts the worker as a detached process and records its pid.

    The pid is written only after the process is seen alive, and only after
    the eviction-priority request has been made. The priority request is
    best effort; its failure never fails the launch.
    """

    def __init__(
        self,
        pid_store: PidFileStore,
        probe: LivenessProbe,
        elevator: PrivilegeElevator,
        audit: AuditLog,
        command_builder: CommandBuilder,
        oom_score_adj: int = -17,
        discovery_retries: int = 10,
        discovery_interval: float = 0.2,
        cwd: Optional[Path] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        :param command_builder: Maps (sensor_path, store_path) to the worker's argv.
        :param oom_score_adj: The score requested for the new worker.
        :param discovery_retries: How many times to look for the new pid.
        :param discovery_interval: Seconds between two looks.
        """
        self.pid_store = pid_store
        self.probe = probe
        self.elevator = elevator
        self.audit = audit
        self.command_builder = command_builder
        self.oom_score_adj = oom_score_adj
        self.discovery_retries = max(1, discovery_retries)
        self.discovery_interval = discovery_interval
        self.cwd = cwd
        self._sleep = sleep

    @property
    def max_discovery_wait(self) -> float:
        """Upper bound, in seconds, of the discovery loop."""
        return self.discovery_retries * self.discovery_interval

    def find_running_pid(self) -> Optional[int]:
        record = self.pid_store.read()
        if record.found and self.probe.is_alive(record.pid):
            return record.pid
        return None

    def _await_discovery(self, pid: int) -> None:
        for attempt in range(self.discovery_retries):
            if self.probe.is_alive(pid):
                log.debug(f"Worker PID {pid} discovered after {attempt + 1} attempt(s).")
                return
            self._sleep(self.discovery_interval)
        raise DiscoveryError(f"worker PID {pid} not visible after {self.max_discovery_wait:.1f}s")

    def _elevate(self, pid: int) -> None:
        result = lower_eviction_priority(self.elevator, pid, self.oom_score_adj)
        if result.success:
            self.audit.append(f"Eviction priority lowered for PID {pid}: oom_score_adj={result.effective_value}")
            log.info(f"Worker PID {pid} oom_score_adj is now {result.effective_value}.")
        else:
            self.audit.append(
                f"[{result.kind.value}] Could not lower eviction priority for PID {pid}: {result.output}. "
                "Worker runs unprotected."
            )
            log.warning(f"Priority elevation for PID {pid} failed ({result.kind.value}): {result.output}")

    def launch(self, sensor_path: Path, store_path: Path) -> OperationOutcome:
        """
        Launches the worker unless one is already alive.

        :param sensor_path: The brightness file the worker will watch.
        :param store_path: The event database the worker will write to.
        :return: STARTED, ALREADY_RUNNING or FAILED.
        """
        running_pid = self.find_running_pid()
        if running_pid is not None:
            log.info(f"Worker already running with PID {running_pid}.")
            return OperationOutcome(SupervisorResult.ALREADY_RUNNING, pid=running_pid)

        args = self.command_builder(Path(sensor_path), Path(store_path))
        log.info("Starting worker process...")
        log.debug(f"Worker command: {args}")
        try:
            pid = spawn_detached(args, self.cwd)
        except OSError as e:
            reason = f"could not spawn worker: {e}"
            log.error(f"Failed to start worker: {e}", exc_info=True)
            return OperationOutcome.failed(ErrorKind.IO_FAILURE, reason)

        try:
            self._await_discovery(pid)
        except DiscoveryError as e:
            log.error(f"Worker launch failed: {e}")
            return OperationOutcome.failed(e.kind, str(e))

        self._elevate(pid)

        if not self.pid_store.write(pid):
            log.error(f"Could not record worker PID {pid}; terminating the untracked worker.")
            try:
                terminate_worker(pid, timeout=self.max_discovery_wait or 1)
            except psutil.Error as e:
                log.error(f"Could not terminate untracked worker PID {pid}: {e}")
            return OperationOutcome.failed(ErrorKind.IO_FAILURE, f"could not write PID file '{self.pid_store.path}'")

        log.info(f"Worker started successfully with PID: {pid}")
        return OperationOutcome(SupervisorResult.STARTED, pid=pid)


def python_worker_command(python_executable: str, worker_module: str, audit_path: Path) -> CommandBuilder:
    """Returns a command builder that runs the worker entry point module."""
    def build(sensor_path: Path, store_path: Path) -> List[str]:
        return get_worker_args(python_executable, worker_module, sensor_path, store_path, audit_path)
    return build
