import logging
from typing import List
from screenlogger.local.supervisor import SupervisorFacade
from screenlogger.local.console.handler import (
    display_status, display_pid, display_sensor, handle_watch_command, handle_logs_command,
    handle_clear_logs_command, handle_events_command, handle_export_events_command,
    handle_config_command, handle_restart_command, toggle_verbose_logging, print_help, print_outcome,
)

log = logging.getLogger(__name__)
supervisor = SupervisorFacade.from_settings()


def execute_command(command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param command: The main command string (e.g., 'start', 'config').
    :param args: A list of arguments for the command.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": lambda: print_outcome("Start", supervisor.start()),
        "stop": lambda: print_outcome("Stop", supervisor.stop()),
        "ensure": lambda: print_outcome("Ensure", supervisor.ensure_running()),
        "restart": lambda: handle_restart_command(supervisor),
        "status": lambda: display_status(supervisor),
        "pid": lambda: display_pid(supervisor),
        "sensor": lambda: display_sensor(supervisor, args),
        "watch": lambda: handle_watch_command(supervisor, args),
        "logs": lambda: handle_logs_command(supervisor),
        "clear-logs": lambda: handle_clear_logs_command(supervisor),
        "events": lambda: handle_events_command(args),
        "export-events": lambda: handle_export_events_command(args),
        "config": lambda: handle_config_command(args),
        "verbose": toggle_verbose_logging,
        "help": print_help,
        "exit": lambda: True
    }

    should_exit = False
    if command in command_map:
        result = command_map[command]()
        if command == "exit" and result is True:
            should_exit = True
    else:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")

    return should_exit
