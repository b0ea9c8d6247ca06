import shutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Optional
from screenlogger.local.supervisor.models import ElevationResult, ErrorKind

log = logging.getLogger(__name__)

OOM_SCORE_ADJ_MIN = -1000
OOM_SCORE_ADJ_MAX = 1000
ABANDON_WAIT = 1.0  # seconds to wait for a killed elevation tool before leaving it to a reaper


class PrivilegeElevator:
    """
    Runs a single shell command with elevated credentials.

    Implementations block until the command finishes or their timeout
    elapses. Failures are reported through the returned ElevationResult,
    never raised.
    """

    timeout: float = 5.0

    def run(self, command: str) -> ElevationResult:
        raise NotImplementedError


class NoOpPrivilegeElevator(PrivilegeElevator):
    """Used where no elevation mechanism exists. Never runs anything."""

    def run(self, command: str) -> ElevationResult:
        log.debug(f"Elevation disabled, not running: {command}")
        return ElevationResult(False, ErrorKind.UNAVAILABLE, "privilege elevation disabled")


class _SubprocessElevator(PrivilegeElevator):
    """Shared subprocess handling: timeout enforcement and failure mapping."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    def _build_args(self, command: str) -> list:
        raise NotImplementedError

    def _abandon(self, proc: subprocess.Popen) -> None:
        """
        Kills a tool that did not answer in time, waiting at most ABANDON_WAIT.

        A setuid `su` may refuse our signal; it is then left to a daemon
        reaper thread so the caller's wait stays bounded.
        """
        try:
            proc.kill()
        except (PermissionError, ProcessLookupError) as e:
            log.warning(f"Could not kill unanswered elevation tool PID {proc.pid}: {e}")
        try:
            proc.communicate(timeout=ABANDON_WAIT)
        except subprocess.TimeoutExpired:
            log.warning(f"Elevation tool PID {proc.pid} still running; leaving it to a reaper thread.")
            threading.Thread(target=proc.wait, daemon=True, name=f"ElevationReaper-{proc.pid}").start()

    def run(self, command: str) -> ElevationResult:
        args = self._build_args(command)
        if shutil.which(args[0]) is None:
            return ElevationResult(False, ErrorKind.UNAVAILABLE, f"'{args[0]}' not found")
        try:
            proc = subprocess.Popen(
                args, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
            )
        except FileNotFoundError as e:
            return ElevationResult(False, ErrorKind.UNAVAILABLE, str(e))
        except PermissionError as e:
            return ElevationResult(False, ErrorKind.DENIED, str(e))
        except OSError as e:
            return ElevationResult(False, ErrorKind.UNAVAILABLE, str(e))

        try:
            stdout, stderr = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            self._abandon(proc)
            return ElevationResult(False, ErrorKind.TIMED_OUT, f"no answer within {self.timeout}s")

        output = (stdout + stderr).strip()
        if proc.returncode != 0:
            return ElevationResult(False, ErrorKind.DENIED, output or f"exit status {proc.returncode}")
        return ElevationResult(True, output=output)


class ShellPrivilegeElevator(_SubprocessElevator):
    """Runs the command through `su -c`."""

    def __init__(self, su_binary: str = "su", timeout: float = 5.0):
        super().__init__(timeout)
        self.su_binary = su_binary

    def _build_args(self, command: str) -> list:
        return [self.su_binary, "-c", command]


class DirectPrivilegeElevator(_SubprocessElevator):
    """Runs the command through the shell with our own credentials."""

    def __init__(self, shell: str = "/bin/sh", timeout: float = 5.0):
        super().__init__(timeout)
        self.shell = shell

    def _build_args(self, command: str) -> list:
        return [self.shell, "-c", command]


def build_elevator(mode: str, su_binary: str = "su", timeout: float = 5.0) -> PrivilegeElevator:
    """
    Selects an elevator implementation from the ELEVATION_MODE setting.

    :param mode: One of 'su', 'direct' or 'none'.
    :param su_binary: The su executable used in 'su' mode.
    :param timeout: Seconds before an elevated command is abandoned.
    """
    mode = (mode or "none").lower()
    if mode == "su":
        return ShellPrivilegeElevator(su_binary, timeout)
    if mode == "direct":
        return DirectPrivilegeElevator(timeout=timeout)
    if mode != "none":
        log.warning(f"Unknown elevation mode '{mode}'. Elevation disabled.")
    return NoOpPrivilegeElevator()


def oom_score_adj_path(pid: int, proc_root: Path = Path("/proc")) -> Path:
    return proc_root / str(pid) / "oom_score_adj"


def read_oom_score_adj(pid: int, proc_root: Path = Path("/proc")) -> Optional[str]:
    try:
        return oom_score_adj_path(pid, proc_root).read_text().strip()
    except OSError:
        return None


def lower_eviction_priority(elevator: PrivilegeElevator, pid: int, score: int,
                            proc_root: Path = Path("/proc")) -> ElevationResult:
    """
    Asks the OS to spare `pid` under memory pressure.

    On success the value is read back, so callers can log what the kernel
    actually holds rather than trusting the exit status.

    :param elevator: The elevation mechanism.
    :param pid: The process to protect.
    :param score: The requested oom_score_adj, clamped to the kernel's range.
    """
    score = max(OOM_SCORE_ADJ_MIN, min(OOM_SCORE_ADJ_MAX, score))
    command = f"echo {score} > {oom_score_adj_path(pid, proc_root)}"
    result = elevator.run(command)
    if not result.success:
        return result
    return ElevationResult(True, output=result.output, effective_value=read_oom_score_adj(pid, proc_root))
