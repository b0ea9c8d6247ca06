"""
Entry point of the detached worker process.

Started by the supervisor with `python -m screenlogger.local.script_entry.worker`.
It lowers its own eviction priority, then runs the screen monitor until
SIGTERM or SIGINT. The supervisor never talks to it: it only knows the pid.
"""
import os
import sys
import signal
import logging
import argparse
import threading
import setproctitle
from pathlib import Path
from typing import List, Optional

from screenlogger.local import app_globals
from screenlogger.log.setup import setup_logging
from screenlogger.local.monitor import ScreenMonitor
from screenlogger.local.database import ScreenEventDBManager
from screenlogger.local.supervisor.audit import AuditLog
from screenlogger.local.supervisor.elevation import build_elevator, lower_eviction_priority

log = logging.getLogger(__name__)
stop_event = threading.Event()


def handle_shutdown_signal(signum, frame):
    """Handle shutdown signals gracefully."""
    log.debug(f"Signal {signum} received, shutting down worker.")
    stop_event.set()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="screenlogger-worker")
    parser.add_argument("--sensor", type=Path, default=app_globals.SENSOR_PATH)
    parser.add_argument("--db", type=Path, default=app_globals.EVENT_DB_PATH)
    parser.add_argument("--audit-log", type=Path, default=app_globals.AUDIT_LOG_PATH)
    return parser.parse_args(argv)


def elevate_self() -> None:
    """Requests a lower eviction priority for this process. Best effort."""
    pid = os.getpid()
    elevator = build_elevator(app_globals.ELEVATION_MODE, app_globals.SU_BINARY, app_globals.ELEVATION_TIMEOUT)
    result = lower_eviction_priority(elevator, pid, app_globals.OOM_SCORE_ADJ)
    if result.success:
        log.info(f"Worker PID {pid} lowered its eviction priority: oom_score_adj={result.effective_value}")
    else:
        log.warning(f"[{result.kind.value}] Worker PID {pid} could not lower its eviction priority: {result.output}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setproctitle.setproctitle(app_globals.WORKER_PROCESS_TITLE)
    setup_logging(audit_log=AuditLog(args.audit_log), console=False)

    signal.signal(signal.SIGTERM, handle_shutdown_signal)
    signal.signal(signal.SIGINT, handle_shutdown_signal)

    log.info(f"Worker process started, PID {os.getpid()}, sensor '{args.sensor}'")
    elevate_self()

    event_db = ScreenEventDBManager(args.db)
    try:
        event_db.initialize_database()
        ScreenMonitor(args.sensor, event_db, stop_event, app_globals.MONITOR_POLL_INTERVAL).run()
        log.info(f"Worker process {os.getpid()} exiting")
        return 0
    except Exception as e:
        log.critical(f"Worker loop crashed: {e}", exc_info=True)
        return 1
    finally:
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
