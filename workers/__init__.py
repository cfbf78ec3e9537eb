"""Background workers.

Each worker moves through an explicit lifecycle: IDLE -> RUNNING -> STOPPED.
A stopped worker cannot be restarted; create a new one instead.
"""

from .state import WorkerState, WorkerStateError
from .lease_reaper import LeaseReaper

__all__ = ['WorkerState', 'WorkerStateError', 'LeaseReaper']
