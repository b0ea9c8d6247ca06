import json
import sys
import time
from pathlib import Path

import pytest

from screenlogger.local.database import ScreenEventDBManager, EVENT_SCREEN_ON, EVENT_SCREEN_OFF
from screenlogger.local.script_entry import worker
from screenlogger.local.supervisor import SupervisorFacade, SupervisorResult
from screenlogger.local.supervisor.audit import AuditLog
from screenlogger.local.supervisor.elevation import NoOpPrivilegeElevator
from screenlogger.local.supervisor.launcher import WorkerLauncher, python_worker_command
from screenlogger.local.supervisor.persistence import PidFileStore
from screenlogger.local.supervisor.process_utils import LivenessProbe

from conftest import kill_quietly

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def wait_for(condition, timeout=15.0, interval=0.1):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return False


class TestWorkerArguments:
    def test_parse_args(self, tmp_path):
        args = worker.parse_args([
            "--sensor", str(tmp_path / "brightness"),
            "--db", str(tmp_path / "events.db"),
            "--audit-log", str(tmp_path / "audit.log"),
        ])
        assert args.sensor == tmp_path / "brightness"
        assert args.db == tmp_path / "events.db"
        assert args.audit_log == tmp_path / "audit.log"


class TestWorkerProcess:
    """Runs the real worker module as a detached process."""

    @pytest.fixture
    def real_facade(self, tmp_path, monkeypatch):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        (data_dir / "overrides.json").write_text(json.dumps({"MONITOR_POLL_INTERVAL": 0.1}))
        monkeypatch.setenv("SCREENLOGGER_DATA_DIR", str(data_dir))
        monkeypatch.setenv("ELEVATION_MODE", "none")

        sensor = tmp_path / "brightness"
        sensor.write_text("100\n")
        pid_store = PidFileStore(data_dir / "screenlogger.pid")
        audit = AuditLog(data_dir / "screenlogger.log")
        launcher = WorkerLauncher(
            pid_store=pid_store,
            probe=LivenessProbe(),
            elevator=NoOpPrivilegeElevator(),
            audit=audit,
            command_builder=python_worker_command(sys.executable, "screenlogger.local.script_entry.worker", audit.path),
            discovery_interval=0.05,
            cwd=PROJECT_ROOT,
        )
        supervisor = SupervisorFacade(
            pid_store, launcher, audit,
            sensor_path=sensor,
            store_path=data_dir / "screen_logger.db",
        )
        yield supervisor
        record = pid_store.read()
        if record.found:
            kill_quietly(record.pid)

    def test_worker_records_screen_transitions(self, real_facade):
        outcome = real_facade.start()
        assert outcome.result is SupervisorResult.STARTED

        event_db = ScreenEventDBManager(real_facade.store_path)
        audit_messages = lambda: [e.message for e in real_facade.audit.entries()]
        assert wait_for(lambda: any("Screen monitoring started" in m for m in audit_messages()))

        real_facade.sensor_path.write_text("0\n")
        assert wait_for(lambda: event_db.last_event_time(EVENT_SCREEN_OFF) is not None)
        real_facade.sensor_path.write_text("80\n")
        assert wait_for(lambda: event_db.last_event_time(EVENT_SCREEN_ON) is not None)

        stopped = real_facade.stop()
        assert stopped.result is SupervisorResult.STOPPED
        assert [e.event_type for e in event_db.last_events()] == [EVENT_SCREEN_OFF, EVENT_SCREEN_ON]
        assert any(m.startswith(f"Worker process started, PID {outcome.pid}") for m in audit_messages())
