import os
import sys

from screenlogger.local.supervisor.launcher import WorkerLauncher, python_worker_command
from screenlogger.local.supervisor.models import ElevationResult, ErrorKind, PidReadStatus, SupervisorResult
from screenlogger.local.supervisor.elevation import NoOpPrivilegeElevator, PrivilegeElevator
from screenlogger.local.supervisor.persistence import PidFileStore
from screenlogger.local.supervisor.process_utils import LivenessProbe

from conftest import kill_quietly, sleeper_command


class NeverAliveProbe(LivenessProbe):
    def is_alive(self, pid):
        return False


class RecordingProbe(LivenessProbe):
    def __init__(self):
        self.asked = []

    def is_alive(self, pid):
        self.asked.append(pid)
        return super().is_alive(pid)


class RecordingElevator(PrivilegeElevator):
    """Records the pid file state at the moment elevation is requested."""

    def __init__(self, pid_store, result):
        self.pid_store = pid_store
        self.result = result
        self.commands = []
        self.pid_file_status_at_call = None

    def run(self, command):
        self.commands.append(command)
        self.pid_file_status_at_call = self.pid_store.read().status
        return self.result


def make_launcher(pid_store, audit, **kwargs):
    options = dict(
        pid_store=pid_store,
        probe=LivenessProbe(),
        elevator=NoOpPrivilegeElevator(),
        audit=audit,
        command_builder=sleeper_command,
        discovery_retries=20,
        discovery_interval=0.05,
    )
    options.update(kwargs)
    return WorkerLauncher(**options)


class TestWorkerLauncher:
    """Tests for spawning, discovery, elevation and pid recording."""

    def test_launch_records_live_pid(self, launcher, pid_store, tmp_path):
        outcome = launcher.launch(tmp_path / "brightness", tmp_path / "events.db")
        try:
            assert outcome.result is SupervisorResult.STARTED
            assert pid_store.read().pid == outcome.pid
            assert LivenessProbe().is_alive(outcome.pid)
        finally:
            kill_quietly(outcome.pid)

    def test_already_running_does_not_spawn(self, pid_store, audit, tmp_path):
        def must_not_spawn(sensor, store):
            raise AssertionError("spawned a second worker")

        pid_store.write(os.getpid())
        launcher = make_launcher(pid_store, audit, command_builder=must_not_spawn)
        outcome = launcher.launch(tmp_path / "brightness", tmp_path / "events.db")
        assert outcome.result is SupervisorResult.ALREADY_RUNNING
        assert outcome.pid == os.getpid()
        assert pid_store.write_count == 1

    def test_pid_written_after_elevation_request(self, pid_store, audit, tmp_path):
        """Elevation is requested before the pid is published, and its failure does not fail the launch."""
        elevator = RecordingElevator(pid_store, ElevationResult(False, ErrorKind.DENIED, "Permission denied"))
        launcher = make_launcher(pid_store, audit, elevator=elevator, oom_score_adj=-17)
        outcome = launcher.launch(tmp_path / "brightness", tmp_path / "events.db")
        try:
            assert outcome.result is SupervisorResult.STARTED
            assert elevator.pid_file_status_at_call is PidReadStatus.ABSENT
            assert elevator.commands == [f"echo -17 > /proc/{outcome.pid}/oom_score_adj"]
            assert pid_store.read().pid == outcome.pid
            messages = [e.message for e in audit.entries()]
            assert any(m.startswith("[Denied] Could not lower eviction priority") for m in messages)
        finally:
            kill_quietly(outcome.pid)

    def test_not_discoverable(self, pid_store, audit, tmp_path):
        """A worker never seen alive fails the launch and leaves the pid file alone."""
        sleeps = []
        launcher = make_launcher(
            pid_store, audit,
            probe=NeverAliveProbe(),
            command_builder=lambda s, d: [sys.executable, "-c", "pass"],
            discovery_retries=3,
            discovery_interval=0.1,
            sleep=sleeps.append,
        )
        outcome = launcher.launch(tmp_path / "brightness", tmp_path / "events.db")
        assert outcome.result is SupervisorResult.FAILED
        assert outcome.error is ErrorKind.NOT_DISCOVERABLE
        assert outcome.reason
        assert sleeps == [0.1, 0.1, 0.1]
        assert pid_store.read().status is PidReadStatus.ABSENT

    def test_spawn_failure(self, pid_store, audit, tmp_path):
        launcher = make_launcher(pid_store, audit, command_builder=lambda s, d: [str(tmp_path / "missing")])
        outcome = launcher.launch(tmp_path / "brightness", tmp_path / "events.db")
        assert outcome.result is SupervisorResult.FAILED
        assert outcome.error is ErrorKind.IO_FAILURE
        assert pid_store.write_count == 0

    def test_unrecordable_worker_is_terminated(self, audit, tmp_path):
        """If the pid cannot be written the new worker is not left running untracked."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = PidFileStore(blocker / "worker.pid")
        probe = RecordingProbe()
        launcher = make_launcher(store, audit, probe=probe)
        outcome = launcher.launch(tmp_path / "brightness", tmp_path / "events.db")
        spawned = set(probe.asked)

        assert outcome.result is SupervisorResult.FAILED
        assert outcome.error is ErrorKind.IO_FAILURE
        assert spawned
        assert not any(LivenessProbe().is_alive(pid) for pid in spawned)

    def test_max_discovery_wait(self, pid_store, audit):
        launcher = make_launcher(pid_store, audit, discovery_retries=10, discovery_interval=0.2)
        assert launcher.max_discovery_wait == 2.0


class TestPythonWorkerCommand:
    def test_builds_module_invocation(self, tmp_path):
        build = python_worker_command("/usr/bin/python3", "screenlogger.local.script_entry.worker", tmp_path / "a.log")
        args = build(tmp_path / "brightness", tmp_path / "events.db")
        assert args[:3] == ["/usr/bin/python3", "-m", "screenlogger.local.script_entry.worker"]
        assert "--pid-file" not in args
        assert str(tmp_path / "a.log") in args
