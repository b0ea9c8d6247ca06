"""
This module contains the configuration settings for the ScreenLogger application.
It defines paths, supervisor timings, privilege elevation options and logging
configuration. It is used throughout the application to ensure consistent
settings and paths between the supervisor, the console and the worker.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
DATA_DIR = pathlib.Path(os.getenv("SCREENLOGGER_DATA_DIR", str(BASE_DIR / "data")))
LOGS_DIR = DATA_DIR / "logs"

#* --- Application File Paths ---
PID_FILE_PATH = DATA_DIR / "screenlogger.pid"
AUDIT_LOG_PATH = DATA_DIR / "screenlogger.log"
EVENT_DB_PATH = DATA_DIR / "screen_logger.db"
LOG_DB_PATH = LOGS_DIR / "app_logs.db"
OVERRIDES_JSON_PATH = DATA_DIR / "overrides.json"

#* --- Sensor ---
SENSOR_PATH = pathlib.Path(os.getenv("SCREENLOGGER_SENSOR_PATH", "/sys/class/backlight/panel0-backlight/brightness"))

#* --- Python Executable Configuration ---
PYTHON_EXECUTABLE = os.getenv("PYTHON_EXECUTABLE", sys.executable)
WORKER_MODULE = "screenlogger.local.script_entry.worker"
WORKER_PROCESS_TITLE = "ScreenLogger - Worker"
CONSOLE_PROCESS_TITLE = "ScreenLogger - Console"

#* --- Privilege Elevation ---
# 'su' runs through the su binary, 'direct' assumes we are already privileged,
# 'none' skips elevation entirely.
ELEVATION_MODE = os.getenv("ELEVATION_MODE", "su").lower()
SU_BINARY = os.getenv("SU_BINARY", "su")
ELEVATION_TIMEOUT = float(os.getenv("ELEVATION_TIMEOUT", "5"))  # seconds
OOM_SCORE_ADJ = int(os.getenv("OOM_SCORE_ADJ", "-17"))

#* --- Supervisor Settings ---
DISCOVERY_RETRIES = 10
DISCOVERY_INTERVAL = 0.2        # seconds, worst case wait is RETRIES * INTERVAL
GRACEFUL_SHUTDOWN_TIMEOUT = 5   # seconds before force-killing
MUTATION_LOCK_TIMEOUT = 30      # seconds a start/stop waits for another one in flight
STATUS_POLL_INTERVAL = 2        # seconds

#* --- Worker Settings ---
MONITOR_POLL_INTERVAL = 1.0     # seconds between brightness reads

#* --- Application variables ---
VERBOSE_LOGGING = False
LOG_HISTORY_COUNT = 50
RECENT_EVENTS_HOURS = 12
LAST_EVENTS_LIMIT = 30

#* --- MODIFIABLE SETTINGS (Changeable at runtime via 'config' command) ---
MODIFIABLE_SETTINGS = {
    "SENSOR_PATH", "ELEVATION_MODE", "ELEVATION_TIMEOUT", "OOM_SCORE_ADJ",
    "DISCOVERY_RETRIES", "DISCOVERY_INTERVAL", "GRACEFUL_SHUTDOWN_TIMEOUT",
    "STATUS_POLL_INTERVAL", "MONITOR_POLL_INTERVAL", "LOG_HISTORY_COUNT",
}
