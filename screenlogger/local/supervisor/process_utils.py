import sys
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)


#* --- Process Status & Monitoring ---
class LivenessProbe:
    """
    Answers whether a process with a given pid exists right now.

    This only checks existence. A pid recycled by the OS for an unrelated
    process is reported alive; no privilege-free check can tell the
    difference once the worker is detached from its parent.
    """

    def is_alive(self, pid: Optional[int]) -> bool:
        if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
            return False
        try:
            if not psutil.pid_exists(pid):
                return False
        except (OverflowError, ValueError):
            # Outside the range the OS can represent, so no such process
            return False
        try:
            # An exited child that has not been reaped yet still has a table entry.
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.Error:
            return True

    def describe(self, pid: Optional[int]) -> str:
        """Gets a string representation of a process, for display only."""
        if not self.is_alive(pid):
            return "stopped"
        try:
            proc = psutil.Process(pid)
            return f"{proc.name()} ({proc.status()})"
        except psutil.NoSuchProcess:
            return "stopped"
        except psutil.Error:
            return "unknown"


#* --- Process Creation ---
def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific keyword arguments that detach a child from our session."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}


def get_worker_args(python_executable: str, worker_module: str, sensor_path: Path, store_path: Path,
                    audit_path: Path) -> List[str]:
    """Returns the command-line arguments that start the worker entry point."""
    return [
        python_executable, "-m", worker_module,
        "--sensor", str(sensor_path),
        "--db", str(store_path),
        "--audit-log", str(audit_path),
    ]


def _reap(process: subprocess.Popen) -> None:
    """Waits on a spawned child so an early exit does not leave a zombie behind."""
    try:
        code = process.wait()
        log.debug(f"Worker PID {process.pid} exited with code {code}.")
    except Exception as e:
        log.debug(f"Reaper for PID {process.pid} exited: {e}")


def spawn_detached(args: List[str], cwd: Optional[Path] = None) -> int:
    """
    Starts a process in its own session with no inherited stdio.

    The Popen handle is only kept by a daemon reaper thread; callers get the
    pid and nothing else.

    :param args: Command-line arguments.
    :param cwd: Working directory of the child.
    :return: The pid of the new process.
    :raises OSError: If the process could not be created.
    """
    popen_kwargs = _get_popen_creation_flags()
    p = subprocess.Popen(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        cwd=str(cwd) if cwd else None,
        close_fds=True,
        **popen_kwargs,
    )
    threading.Thread(target=_reap, args=(p,), daemon=True, name=f"WorkerReaper-{p.pid}").start()
    return p.pid
