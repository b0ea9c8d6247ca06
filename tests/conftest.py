"""Shared fixtures: a supervisor wired to a temporary directory and a stand-in worker."""

import sys
from pathlib import Path
from typing import List

import psutil
import pytest

from screenlogger.local.supervisor import SupervisorFacade
from screenlogger.local.supervisor.audit import AuditLog
from screenlogger.local.supervisor.elevation import NoOpPrivilegeElevator
from screenlogger.local.supervisor.launcher import WorkerLauncher
from screenlogger.local.supervisor.persistence import PidFileStore
from screenlogger.local.supervisor.process_utils import LivenessProbe

SLEEPER_SCRIPT = "import time; time.sleep(60)"


def sleeper_command(sensor_path: Path, store_path: Path) -> List[str]:
    """A worker that does nothing but stay alive, so launch tests never touch a real sensor."""
    return [sys.executable, "-c", SLEEPER_SCRIPT]


def kill_quietly(pid):
    """Kills a worker spawned by this test session; any other pid is left alone."""
    if pid not in {child.pid for child in psutil.Process().children(recursive=True)}:
        return
    try:
        proc = psutil.Process(pid)
        proc.kill()
        proc.wait(timeout=5)
    except psutil.Error:
        pass


@pytest.fixture
def pid_store(tmp_path):
    return PidFileStore(tmp_path / "screenlogger.pid")


@pytest.fixture
def audit(tmp_path):
    return AuditLog(tmp_path / "screenlogger.log")


@pytest.fixture
def launcher(pid_store, audit):
    return WorkerLauncher(
        pid_store=pid_store,
        probe=LivenessProbe(),
        elevator=NoOpPrivilegeElevator(),
        audit=audit,
        command_builder=sleeper_command,
        discovery_retries=20,
        discovery_interval=0.05,
    )


@pytest.fixture
def facade(tmp_path, pid_store, launcher, audit):
    """A facade whose worker is a sleeping Python process; any worker left behind is killed."""
    sensor = tmp_path / "brightness"
    sensor.write_text("120\n")
    supervisor = SupervisorFacade(
        pid_store=pid_store,
        launcher=launcher,
        audit=audit,
        sensor_path=sensor,
        store_path=tmp_path / "screen_logger.db",
        graceful_shutdown_timeout=3,
        mutation_lock_timeout=10,
    )
    yield supervisor
    record = pid_store.read()
    if record.found:
        kill_quietly(record.pid)


@pytest.fixture
def dead_pid():
    """A pid that belonged to a process which has already exited and been reaped."""
    proc = psutil.Popen([sys.executable, "-c", "pass"])
    proc.wait(timeout=10)
    return proc.pid
