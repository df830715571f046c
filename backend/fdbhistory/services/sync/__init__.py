"""FDB history sync services."""
from .reconciler import Observation, ReconcileResult, Reconciler, StreakPolicy
from .sync_job import SyncReport, run_locked_sync, run_sync_cycle, verify_history_store
from .sync_lock import SyncLock

__all__ = [
    "Observation",
    "ReconcileResult",
    "Reconciler",
    "StreakPolicy",
    "SyncLock",
    "SyncReport",
    "run_locked_sync",
    "run_sync_cycle",
    "verify_history_store",
]
