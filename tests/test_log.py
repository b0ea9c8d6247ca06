import logging

import pytest
from openpyxl import load_workbook

from screenlogger.local.database import LogDBManager, ScreenEventDBManager, EVENT_SCREEN_ON, EVENT_SCREEN_OFF
from screenlogger.local.supervisor.audit import AuditLog, AuditLogHandler
from screenlogger.log.export import escape_formula, export_events_to_excel
from screenlogger.log.handler import SQLiteHandler
from screenlogger.log.setup import setup_logging


@pytest.fixture
def restore_root_logger():
    """Puts the root logger's handlers back after a test reconfigures logging."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


class TestSQLiteHandler:
    """Tests for the batched log database handler."""

    def test_flush_writes_buffered_records(self, tmp_path):
        db_path = tmp_path / "logs.db"
        handler = SQLiteHandler(db_path, buffer_size=100, flush_interval=60)
        logger = logging.getLogger("tests.sqlite_handler")
        logger.propagate = False
        logger.setLevel(logging.DEBUG)
        logger.addHandler(handler)
        try:
            logger.info("worker started")
            logger.debug("noisy detail")
            handler.flush()
        finally:
            logger.removeHandler(handler)
            handler.close()

        entries = LogDBManager(db_path).fetch_last_entries(10)
        assert len(entries) == 1
        assert entries[0].message.endswith("worker started")
        assert len(LogDBManager(db_path).fetch_last_entries(10, include_debug=True)) == 2

    def test_full_buffer_is_written_without_flush(self, tmp_path):
        db_path = tmp_path / "logs.db"
        handler = SQLiteHandler(db_path, buffer_size=2, flush_interval=60)
        try:
            for i in range(2):
                handler.emit(logging.LogRecord("t", logging.INFO, __file__, 1, f"line {i}", None, None))
            assert len(LogDBManager(db_path).fetch_last_entries(10)) == 2
        finally:
            handler.close()


class TestSetupLogging:
    def test_worker_configuration(self, tmp_path, restore_root_logger):
        """Without a console the worker logs to the database and, from INFO up, to the audit log."""
        audit = AuditLog(tmp_path / "audit.log")
        setup_logging(log_db_path=tmp_path / "logs.db", audit_log=audit, console=False)

        handler_types = {type(h) for h in restore_root_logger.handlers}
        assert handler_types == {SQLiteHandler, AuditLogHandler}

        logging.getLogger("tests.setup").info("Worker process started")
        logging.getLogger("tests.setup").debug("not for the audit log")
        assert [e.message for e in audit.entries()] == ["Worker process started"]

    def test_reconfiguring_replaces_handlers(self, tmp_path, restore_root_logger):
        setup_logging(log_db_path=tmp_path / "logs.db")
        setup_logging(log_db_path=tmp_path / "logs.db")
        stream_handlers = [h for h in restore_root_logger.handlers if type(h) is logging.StreamHandler]
        assert len(stream_handlers) == 1


class TestExportEvents:
    """Tests for the Excel export of screen events."""

    def test_export(self, tmp_path):
        db_path = tmp_path / "events.db"
        event_db = ScreenEventDBManager(db_path)
        event_db.initialize_database()
        event_db.insert_event(EVENT_SCREEN_OFF, "2024-01-01 10:00:00")
        event_db.insert_event(EVENT_SCREEN_ON, "2024-01-01 10:05:00")

        output = tmp_path / "events.xlsx"
        assert export_events_to_excel(db_path, output)

        ws = load_workbook(output)["Screen Events"]
        assert [c.value for c in ws[1]] == ["ID", "Timestamp", "Event"]
        assert [c.value for c in ws[2]][1:] == ["2024-01-01 10:00:00", "SCREEN_OFF"]
        assert [c.value for c in ws[3]][1:] == ["2024-01-01 10:05:00", "SCREEN_ON"]

    def test_missing_database(self, tmp_path):
        assert export_events_to_excel(tmp_path / "missing.db", tmp_path / "out.xlsx") is False
        assert not (tmp_path / "out.xlsx").exists()

    def test_empty_database(self, tmp_path):
        db_path = tmp_path / "events.db"
        ScreenEventDBManager(db_path).initialize_database()
        assert export_events_to_excel(db_path, tmp_path / "out.xlsx") is False

    @pytest.mark.parametrize("value, expected", [
        ("=SUM(A1)", "'=SUM(A1)"),
        ("SCREEN_ON", "SCREEN_ON"),
        (5, 5),
    ])
    def test_escape_formula(self, value, expected):
        assert escape_formula(value) == expected
