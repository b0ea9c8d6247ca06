import psutil
import logging

log = logging.getLogger(__name__)


def terminate_worker(pid: int, timeout: float) -> bool:
    """
    Sends SIGTERM to the worker, waits, and kills it if it did not exit.

    :param pid: The worker pid.
    :param timeout: Seconds to wait after SIGTERM before SIGKILL.
    :return: True once the process is confirmed gone.
    :raises psutil.AccessDenied: If we are not allowed to signal the process.
    """
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return True

    try:
        log.debug(f"Sending SIGTERM to {proc.name()} (PID {pid})")
        proc.terminate()
    except psutil.NoSuchProcess:
        return True

    _, alive = psutil.wait_procs([proc], timeout=timeout)
    if not alive:
        return True

    log.warning(f"Worker PID {pid} did not terminate gracefully. Forcing shutdown...")
    try:
        proc.kill()
    except psutil.NoSuchProcess:
        return True
    _, alive = psutil.wait_procs([proc], timeout=timeout)
    return not alive
