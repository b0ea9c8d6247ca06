import sys
import time
import tty
import select
import termios
import logging
from pathlib import Path
from typing import List, Optional

from screenlogger.local import app_globals
from screenlogger.local.database import LogDBManager, ScreenEventDBManager, EVENT_SCREEN_ON, EVENT_SCREEN_OFF
from screenlogger.local.supervisor import (
    SupervisorFacade, StatusPoller, OperationOutcome, SupervisorResult, WorkerStatus, SENSOR_READ_FAILURE,
)
from screenlogger.local.supervisor.process_utils import LivenessProbe
from screenlogger.log.export import export_events_to_excel

log = logging.getLogger(__name__)


def is_keypress_waiting() -> bool:
    if not sys.stdin.isatty():
        return False
    return select.select([sys.stdin], [], [], 0) == ([sys.stdin], [], [])


def clear_keypress_buffer() -> None:
    if not sys.stdin.isatty():
        return
    # Switch to cbreak mode temporarily to read without Enter
    old_settings = termios.tcgetattr(sys.stdin)
    try:
        tty.setcbreak(sys.stdin.fileno())
        while is_keypress_waiting():
            sys.stdin.read(1)
    finally:
        termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)


def print_outcome(action: str, outcome: OperationOutcome) -> None:
    """Prints the result of a start/stop/ensure call."""
    if outcome.result is SupervisorResult.FAILED:
        print(f"{action}: FAILED [{outcome.error.value}] {outcome.reason}")
    elif outcome.pid is not None:
        print(f"{action}: {outcome.result.value} (PID {outcome.pid})")
    else:
        print(f"{action}: {outcome.result.value}")


def handle_restart_command(supervisor: SupervisorFacade) -> None:
    stop_outcome = supervisor.stop()
    print_outcome("Stop", stop_outcome)
    if stop_outcome.result is SupervisorResult.FAILED:
        print("Worker could not be stopped; not starting a second one.")
        return
    print_outcome("Start", supervisor.start())


#* --- Status ---
def display_status(supervisor: SupervisorFacade) -> None:
    """Shows whether the worker runs, its process details and the latest screen events."""
    status = supervisor.status()
    print("\n--- Worker Status ---")
    print(f"  Status         : {status}")
    if status.running:
        print(f"  Process        : {LivenessProbe().describe(status.pid)}")
    print(f"  Pid file       : {supervisor.pid_store.path}")
    print(f"  Sensor         : {supervisor.sensor_path}")

    event_db = ScreenEventDBManager(app_globals.EVENT_DB_PATH)
    if Path(app_globals.EVENT_DB_PATH).exists():
        try:
            last_on = event_db.last_event_time(EVENT_SCREEN_ON) or "never"
            last_off = event_db.last_event_time(EVENT_SCREEN_OFF) or "never"
            print(f"  Last screen on : {last_on}")
            print(f"  Last screen off: {last_off}")
        except Exception as e:
            log.error(f"Failed to read the event store: {e}")
    print("-" * 21 + "\n")


def display_pid(supervisor: SupervisorFacade) -> None:
    pid = supervisor.current_pid()
    print(pid if pid is not None else "No worker running.")


def display_sensor(supervisor: SupervisorFacade, args: List[str]) -> None:
    """Reads the brightness sensor once, from the configured path or the one given."""
    path = Path(args[0]) if args else supervisor.sensor_path
    value = supervisor.read_sensor(path)
    if value == SENSOR_READ_FAILURE:
        print(f"Could not read sensor '{path}'.")
    else:
        state = "on" if value > 0 else "off"
        print(f"Brightness {value} (screen {state})")


def handle_watch_command(supervisor: SupervisorFacade, args: List[str]) -> None:
    """
    Prints worker status changes until a key is pressed, Ctrl+C, or the optional
    duration in seconds has elapsed.
    """
    duration: Optional[float] = None
    if args:
        try:
            duration = float(args[0])
        except ValueError:
            print("Usage: watch [seconds]")
            return

    shown = []

    def on_status(status: WorkerStatus) -> None:
        if not shown or status != shown[-1]:
            print(f"[{time.strftime('%H:%M:%S')}] {status}")
            shown.append(status)

    poller = StatusPoller(supervisor, interval=app_globals.STATUS_POLL_INTERVAL, on_status=on_status)
    print("--- Watching worker status (Press any key to stop) ---")

    deadline = time.monotonic() + duration if duration is not None else None
    poller.start()
    try:
        while not is_keypress_waiting():
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(0.2)
        clear_keypress_buffer()
    except KeyboardInterrupt:
        print()
    finally:
        poller.stop()
    print("--- Stopped watching. ---")


#* --- Logs ---
def handle_logs_command(supervisor: SupervisorFacade) -> None:
    """Prints the audit log followed by the latest application log entries."""
    audit_text = supervisor.audit.read_all()
    print("\n--- Supervisor audit log ---")
    print(audit_text.rstrip("\n") if audit_text else "(empty)")

    log_db = LogDBManager(app_globals.LOG_DB_PATH)
    print(f"\n--- Last {app_globals.LOG_HISTORY_COUNT} application log entries ---")
    try:
        for log_entry in log_db.fetch_last_entries(app_globals.LOG_HISTORY_COUNT, app_globals.VERBOSE_LOGGING):
            print(log_entry.message)
    except Exception as e:
        log.error(f"Failed to fetch log history: {e}")
    print()


def handle_clear_logs_command(supervisor: SupervisorFacade) -> None:
    if supervisor.audit.clear():
        print("Audit log cleared.")
    else:
        print("Could not clear the audit log. Check logs for details.")


#* --- Events ---
def handle_events_command(args: List[str]) -> None:
    """Lists the last N screen events (oldest first) and counts those of the recent window."""
    try:
        limit = int(args[0]) if args else app_globals.LAST_EVENTS_LIMIT
    except ValueError:
        print("Usage: events [count]")
        return

    if not Path(app_globals.EVENT_DB_PATH).exists():
        print("No screen events recorded yet.")
        return

    event_db = ScreenEventDBManager(app_globals.EVENT_DB_PATH)
    try:
        events = event_db.last_events(limit)
        recent = event_db.recent_events(app_globals.RECENT_EVENTS_HOURS)
    except Exception as e:
        log.error(f"Failed to read screen events: {e}")
        return

    print(f"\n--- Last {len(events)} screen events ---")
    for event in events:
        print(f"  {event.timestamp}  {event.event_type}")
    print(f"({len(recent)} events in the last {app_globals.RECENT_EVENTS_HOURS} hours)\n")


def handle_export_events_command(args: List[str]) -> None:
    output_file = Path(args[0] if args else app_globals.DATA_DIR / "screen_events.xlsx")
    log.info(f"Exporting screen events to '{output_file}'...")
    if not export_events_to_excel(app_globals.EVENT_DB_PATH, output_file):
        print("Export failed or nothing to export. Check logs for details.")


#* --- Config ---
def _config_show() -> None:
    """Displays the current value of every modifiable setting."""
    print("\n--- Current Application Configuration ---")
    for key in sorted(app_globals.MODIFIABLE_SETTINGS):
        print(f"  {key} = {app_globals.get(key, 'N/A')}")
    print("---")
    print("Use 'config set <KEY> <VALUE>' to change a setting.")
    print("The worker reads its configuration at start; use 'restart' to apply changes there.")
    print("---------------------------------------\n")


def _config_set(args: List[str]) -> None:
    if len(args) < 2:
        print("Usage: config set <SETTING_NAME> <VALUE>")
        return
    key, value_str = args[0].upper(), " ".join(args[1:])
    _, message = app_globals.update_setting(key, value_str)
    print(message)


def _config_help() -> None:
    print("\nConfig Command Help:")
    print("  config show                - Display all modifiable settings.")
    print("  config set KEY VALUE       - Change a setting and save it to overrides.json.")
    print("  config help                - Show this help message.")


def handle_config_command(args: List[str]) -> None:
    """
    Handles all sub-commands for the 'config' command.

    :param args: A list of string arguments following the 'config' command.
    """
    sub_command = args[0].lower() if args else "show"

    if sub_command == "show":
        _config_show()
    elif sub_command == "set":
        _config_set(args[1:])
    elif sub_command == "help":
        _config_help()
    else:
        print(f"Unknown config sub-command: '{sub_command}'. Type 'config help' for available commands.")


def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    app_globals.VERBOSE_LOGGING = not app_globals.VERBOSE_LOGGING
    new_level = logging.DEBUG if app_globals.VERBOSE_LOGGING else logging.INFO

    root_logger = logging.getLogger()
    found_handler = False
    for handler in root_logger.handlers:
        # FileHandler subclasses StreamHandler; only the console one is wanted
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(new_level)
            found_handler = True
            break

    status = "ON" if app_globals.VERBOSE_LOGGING else "OFF"
    if found_handler:
        print(f"Verbose console logging is now {status}.")
        log.debug("Debug logging test: This message should only appear when verbose is ON.")
    else:
        print("Could not find console handler to modify level.")


def print_help() -> None:
    """Prints the main help text for the console."""
    print("\nAvailable commands:")
    print("  start                    - Start the screen-logging worker.")
    print("  stop                     - Stop the worker.")
    print("  restart                  - Stop and then start the worker.")
    print("  ensure                   - Start the worker only if it is not running (for boot hooks).")
    print("  status                   - Show the worker status and the latest screen events.")
    print("  pid                      - Print the worker's PID.")
    print("  sensor [path]            - Read the brightness sensor once.")
    print("  watch [seconds]          - Print worker status changes as they happen.")
    print("  logs                     - Show the audit log and recent application logs.")
    print("  clear-logs               - Truncate the audit log.")
    print("  events [count]           - List the last screen events.")
    print("  export-events [filename] - Export screen events to a styled Excel file.")
    print("  config <cmd>             - Manage configuration. Use 'config help' for more details.")
    print("  verbose                  - Toggle detailed DEBUG log output in the console.")
    print("  exit                     - Exit the management console.")
    print()
