"""Lifecycle states shared by the background workers."""

from enum import Enum


class WorkerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class WorkerStateError(Exception):
    """Raised for a lifecycle transition the worker's current state doesn't allow."""
    def __init__(self, worker: str, state: WorkerState, action: str):
        self.worker = worker
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} {worker} while {state.value}")
