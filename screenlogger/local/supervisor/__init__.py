"""
The Supervisor package.
Manages the lifecycle of the detached screen-logging worker.

This package contains the SupervisorFacade and the components it composes:
the pid file store, the liveness probe, the privilege elevator, the audit
log and the worker launcher.
"""
from .supervisor import SupervisorFacade, read_sensor_value, SENSOR_READ_FAILURE
from .background_tasks import StatusPoller
from .models import SupervisorResult, SupervisorState, WorkerStatus, OperationOutcome, ErrorKind

__all__ = [
    'SupervisorFacade', 'StatusPoller', 'read_sensor_value', 'SENSOR_READ_FAILURE',
    'SupervisorResult', 'SupervisorState', 'WorkerStatus', 'OperationOutcome', 'ErrorKind',
]
