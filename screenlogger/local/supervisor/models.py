import time
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


class SupervisorResult(Enum):
    """Outcome code of a control operation."""
    STARTED = "Started"
    ALREADY_RUNNING = "AlreadyRunning"
    STOPPED = "Stopped"
    NOT_RUNNING = "NotRunning"
    FAILED = "Failed"


class SupervisorState(Enum):
    STOPPED = "Stopped"
    STARTING = "Starting"
    RUNNING = "Running"
    STOPPING = "Stopping"
    UNKNOWN = "Unknown"


class ErrorKind(Enum):
    """Failure taxonomy used in audit entries and failed outcomes."""
    DENIED = "Denied"
    UNAVAILABLE = "Unavailable"
    TIMED_OUT = "TimedOut"
    IO_FAILURE = "IOFailure"
    NOT_DISCOVERABLE = "NotDiscoverable"
    STALE_IDENTITY = "StaleIdentity"


class PidReadStatus(Enum):
    OK = "ok"
    ABSENT = "absent"
    CORRUPT = "corrupt"
    IO_FAILURE = "io_failure"


@dataclass(frozen=True)
class WorkerIdentity:
    """A pid observed alive at a point in time. Never cached across calls."""
    pid: int
    found_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class PidReadResult:
    status: PidReadStatus
    pid: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.status is PidReadStatus.OK


@dataclass(frozen=True)
class ElevationResult:
    """
    Result of a privileged command.

    :param success: True if the command exited with status 0.
    :param kind: The failure kind when success is False.
    :param output: Captured stdout/stderr of the command.
    :param effective_value: Post-condition read back after the command, if any.
    """
    success: bool
    kind: Optional[ErrorKind] = None
    output: str = ""
    effective_value: Optional[str] = None


@dataclass(frozen=True)
class OperationOutcome:
    """What a control operation returns to its caller."""
    result: SupervisorResult
    pid: Optional[int] = None
    reason: Optional[str] = None
    error: Optional[ErrorKind] = None

    def __post_init__(self):
        if self.result is SupervisorResult.FAILED and not self.reason:
            raise ValueError("A failed outcome must carry a reason.")

    @classmethod
    def failed(cls, error: ErrorKind, reason: str) -> "OperationOutcome":
        return cls(SupervisorResult.FAILED, reason=reason, error=error)


@dataclass(frozen=True)
class WorkerStatus:
    state: SupervisorState
    pid: Optional[int] = None

    @property
    def running(self) -> bool:
        return self.state is SupervisorState.RUNNING

    def __str__(self) -> str:
        if self.running:
            return f"Running({self.pid})"
        return self.state.value


class SupervisorError(Exception):
    """Base class for internal supervisor failures; never escapes the facade."""
    kind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class DiscoveryError(SupervisorError):
    kind = ErrorKind.NOT_DISCOVERABLE


class MutationLockTimeout(SupervisorError):
    kind = ErrorKind.TIMED_OUT
