import time
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Callable, Optional
from screenlogger.local.database import ScreenEventDBManager, EVENT_SCREEN_ON, EVENT_SCREEN_OFF
from screenlogger.local.supervisor import read_sensor_value, SENSOR_READ_FAILURE

log = logging.getLogger(__name__)


class ScreenMonitor:
    """
    The worker's main loop: watches the brightness file and records
    SCREEN_ON / SCREEN_OFF transitions in the event store.

    A brightness above zero means the screen is on. Failed reads are skipped
    and never produce an event.
    """

    def __init__(
        self,
        sensor_path: Path,
        event_db: ScreenEventDBManager,
        stop_event: threading.Event,
        poll_interval: float = 1.0,
        read_sensor: Callable[[Path], int] = read_sensor_value,
    ):
        self.sensor_path = Path(sensor_path)
        self.event_db = event_db
        self.stop_event = stop_event
        self.poll_interval = poll_interval
        self._read_sensor = read_sensor
        self.screen_on: Optional[bool] = None

    def check_once(self) -> Optional[str]:
        """
        Reads the sensor once and records a transition if there is one.

        :return: The event type recorded, or None.
        """
        brightness = self._read_sensor(self.sensor_path)
        if brightness == SENSOR_READ_FAILURE:
            return None

        is_on = brightness > 0
        if self.screen_on is None:
            self.screen_on = is_on
            log.info(f"Screen monitoring started. Initial brightness: {brightness}, screen on: {is_on}")
            return None
        if is_on == self.screen_on:
            return None

        event_type = EVENT_SCREEN_ON if is_on else EVENT_SCREEN_OFF
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        try:
            self.event_db.insert_event(event_type, timestamp)
        except sqlite3.Error as e:
            log.error(f"Failed to record {event_type} at {timestamp}: {e}")
            return None
        self.screen_on = is_on
        log.info(f"Screen state changed: {event_type} at {timestamp} (brightness {brightness})")
        return event_type

    def run(self) -> None:
        log.debug(f"Monitoring brightness file: {self.sensor_path}")
        while not self.stop_event.is_set():
            self.check_once()
            self.stop_event.wait(self.poll_interval)
        log.info("Screen monitoring stopped.")
