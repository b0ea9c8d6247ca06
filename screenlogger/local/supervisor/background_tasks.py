import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional
from screenlogger.local.supervisor.models import WorkerStatus

if TYPE_CHECKING:
    from .supervisor import SupervisorFacade

log = logging.getLogger(__name__)


class StatusPoller:
    """
    Queries the supervisor's status on a fixed interval, for observability only.

    It never starts or stops anything. Stopping the poller simply stops
    issuing queries.
    """

    def __init__(
        self,
        supervisor: "SupervisorFacade",
        interval: float = 2.0,
        on_status: Optional[Callable[[WorkerStatus], None]] = None,
    ):
        """
        :param supervisor: The facade to query.
        :param interval: Seconds between two queries.
        :param on_status: Called with every status observed.
        """
        self.supervisor = supervisor
        self.interval = interval
        self.on_status = on_status
        self.last_status: Optional[WorkerStatus] = None
        self.stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> WorkerStatus:
        status = self.supervisor.status()
        if self.last_status is not None and status != self.last_status:
            log.info(f"Worker status changed: {self.last_status} -> {status}")
        self.last_status = status
        if self.on_status:
            self.on_status(status)
        return status

    def _run(self) -> None:
        log.debug(f"Status poller started (interval {self.interval}s).")
        while not self.stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                log.error(f"Status poll failed: {e}", exc_info=True)
            self.stop_event.wait(self.interval)
        log.debug("Status poller has stopped.")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self.stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="StatusPollerThread")
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout if timeout is not None else self.interval + 1)
            self._thread = None
