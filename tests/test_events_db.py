import time

import pytest

from screenlogger.local.database import ScreenEventDBManager, EVENT_SCREEN_ON, EVENT_SCREEN_OFF
from screenlogger.local.database.events import TIMESTAMP_FORMAT


@pytest.fixture
def event_db(tmp_path):
    db = ScreenEventDBManager(tmp_path / "screen_logger.db")
    db.initialize_database()
    return db


def hours_ago(hours):
    return time.strftime(TIMESTAMP_FORMAT, time.localtime(time.time() - hours * 3600))


class TestScreenEventDBManager:
    """Tests for the screen event store."""

    def test_initialize_is_repeatable(self, event_db):
        event_db.initialize_database()
        assert event_db.last_events() == []

    def test_insert_defaults_to_now(self, event_db):
        event_db.insert_event(EVENT_SCREEN_ON)
        event = event_db.last_events()[0]
        assert event.event_type == EVENT_SCREEN_ON
        assert time.strptime(event.timestamp, TIMESTAMP_FORMAT)

    def test_last_events_are_oldest_first(self, event_db):
        for i in range(5):
            event_db.insert_event(EVENT_SCREEN_ON if i % 2 == 0 else EVENT_SCREEN_OFF, f"2024-01-01 10:00:0{i}")
        events = event_db.last_events(limit=3)
        assert [e.timestamp for e in events] == ["2024-01-01 10:00:02", "2024-01-01 10:00:03", "2024-01-01 10:00:04"]

    def test_recent_events_window_is_newest_first(self, event_db):
        event_db.insert_event(EVENT_SCREEN_ON, hours_ago(20))
        event_db.insert_event(EVENT_SCREEN_OFF, hours_ago(2))
        event_db.insert_event(EVENT_SCREEN_ON, hours_ago(1))
        events = event_db.recent_events(hours=12)
        assert [e.event_type for e in events] == [EVENT_SCREEN_ON, EVENT_SCREEN_OFF]

    def test_last_event_time(self, event_db):
        assert event_db.last_event_time(EVENT_SCREEN_OFF) is None
        event_db.insert_event(EVENT_SCREEN_OFF, "2024-01-01 08:00:00")
        event_db.insert_event(EVENT_SCREEN_OFF, "2024-01-01 09:00:00")
        event_db.insert_event(EVENT_SCREEN_ON, "2024-01-01 09:30:00")
        assert event_db.last_event_time(EVENT_SCREEN_OFF) == "2024-01-01 09:00:00"

    def test_delete_all_events(self, event_db):
        event_db.insert_event(EVENT_SCREEN_ON)
        event_db.delete_all_events()
        assert event_db.last_events() == []


class TestCrossProcessAccess:
    def test_uses_write_ahead_logging(self, event_db):
        row = event_db.fetch_one("PRAGMA journal_mode")
        assert row[0] == "wal"

    def test_separate_managers_share_the_file(self, event_db):
        """A writer and a reader with their own managers see the same events, as the worker and console do."""
        writer = ScreenEventDBManager(event_db.db_path)
        writer.insert_event(EVENT_SCREEN_OFF, "2024-01-01 10:00:00")
        assert event_db.last_event_time(EVENT_SCREEN_OFF) == "2024-01-01 10:00:00"
