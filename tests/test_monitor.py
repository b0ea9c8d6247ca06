import threading

import pytest

from screenlogger.local.database import ScreenEventDBManager, EVENT_SCREEN_ON, EVENT_SCREEN_OFF
from screenlogger.local.monitor import ScreenMonitor
from screenlogger.local.supervisor import SENSOR_READ_FAILURE


class ScriptedSensor:
    """Returns the given readings in order, then repeats the last one."""

    def __init__(self, readings):
        self.readings = list(readings)

    def __call__(self, path):
        if len(self.readings) > 1:
            return self.readings.pop(0)
        return self.readings[0]


@pytest.fixture
def event_db(tmp_path):
    db = ScreenEventDBManager(tmp_path / "screen_logger.db")
    db.initialize_database()
    return db


def make_monitor(tmp_path, event_db, readings):
    return ScreenMonitor(tmp_path / "brightness", event_db, threading.Event(), 0.01, ScriptedSensor(readings))


class TestScreenMonitor:
    """Tests for brightness to screen-event translation."""

    def test_first_reading_sets_baseline_only(self, tmp_path, event_db):
        monitor = make_monitor(tmp_path, event_db, [100])
        assert monitor.check_once() is None
        assert monitor.screen_on is True
        assert event_db.last_events() == []

    def test_transitions_are_recorded(self, tmp_path, event_db):
        monitor = make_monitor(tmp_path, event_db, [100, 80, 0, 0, 15])
        results = [monitor.check_once() for _ in range(5)]
        assert results == [None, None, EVENT_SCREEN_OFF, None, EVENT_SCREEN_ON]
        assert [e.event_type for e in event_db.last_events()] == [EVENT_SCREEN_OFF, EVENT_SCREEN_ON]

    def test_failed_reads_are_ignored(self, tmp_path, event_db):
        monitor = make_monitor(tmp_path, event_db, [SENSOR_READ_FAILURE, 0, SENSOR_READ_FAILURE, 0])
        results = [monitor.check_once() for _ in range(4)]
        assert results == [None, None, None, None]
        assert monitor.screen_on is False
        assert event_db.last_events() == []

    def test_run_stops_on_event(self, tmp_path, event_db):
        monitor = make_monitor(tmp_path, event_db, [0, 50])
        thread = threading.Thread(target=monitor.run)
        thread.start()
        monitor.stop_event.set()
        thread.join(timeout=5)
        assert not thread.is_alive()

    def test_reads_real_sensor_file(self, tmp_path, event_db):
        sensor = tmp_path / "brightness"
        sensor.write_text("0\n")
        monitor = ScreenMonitor(sensor, event_db, threading.Event())
        monitor.check_once()
        sensor.write_text("200\n")
        assert monitor.check_once() == EVENT_SCREEN_ON
