"""One sync batch: reconcile ports_fdb into fdb_history, then apply retention.

Used by the command line job, the in-process scheduler and the maintenance
API. Callers that can overlap go through ``run_locked_sync``.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from fdbhistory.core.config import Settings
from fdbhistory.core.exceptions import StoreUnavailableError
from fdbhistory.db.database import has_table, make_session_factory
from fdbhistory.services.cleanup import RetentionSweeper
from fdbhistory.services.sync.reconciler import ReconcileResult, Reconciler, StreakPolicy
from fdbhistory.services.sync.sync_lock import SyncLock
from fdbhistory.utils.liveness import store_now

logger = logging.getLogger(__name__)

HISTORY_TABLE = "fdb_history"
SOURCE_TABLE = "ports_fdb"


@dataclass
class SyncReport:
    """Outcome of one sync batch."""

    started_at: datetime
    result: ReconcileResult
    retention_days: int
    deleted: Optional[int]
    elapsed: float

    def summary_line(self) -> str:
        return (
            f"Sync complete - {SOURCE_TABLE}: {self.result.source_count} rows | "
            f"{HISTORY_TABLE}: {self.result.history_total} rows | "
            f"new: {self.result.inserted} | updated: {self.result.updated} | "
            f"elapsed: {self.elapsed:.2f}s"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            **self.result.to_dict(),
            "retention_days": self.retention_days,
            "deleted": self.deleted,
            "elapsed": round(self.elapsed, 2),
        }


def verify_history_store(engine: Engine):
    """Check that the store is reachable and both tables exist.

    Raises:
        StoreUnavailableError: never tries to create anything
    """
    try:
        history_exists = has_table(engine, HISTORY_TABLE)
        source_exists = has_table(engine, SOURCE_TABLE)
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"Cannot connect to the history store: {e}") from e

    if not history_exists:
        raise StoreUnavailableError(
            f"Table '{HISTORY_TABLE}' does not exist. "
            "Run 'fdb-history-setup' against this database first."
        )
    if not source_exists:
        raise StoreUnavailableError(f"Source table '{SOURCE_TABLE}' does not exist.")


def run_sync_cycle(engine: Engine, settings: Settings, now: Optional[datetime] = None) -> SyncReport:
    """Run reconcile then retention against the given store.

    Args:
        engine: Engine for the database holding ports_fdb and fdb_history
        settings: Retention, streak and batch settings
        now: Timestamp applied to every row touched in this cycle

    Raises:
        StoreUnavailableError: store unreachable or tables missing
        ReconcileError: reconcile failed and was rolled back
        RetentionError: retention sweep failed and was rolled back
    """
    start = time.perf_counter()
    if now is None:
        now = store_now(settings.store_timezone).replace(microsecond=0)

    verify_history_store(engine)

    session_factory = make_session_factory(engine)
    with session_factory() as db:
        reconciler = Reconciler(
            db,
            streak_policy=StreakPolicy(settings.streak_policy),
            streak_gap=timedelta(minutes=settings.streak_gap_minutes),
            batch_size=settings.upsert_batch_size,
        )
        result = reconciler.reconcile_from_source(now)

        deleted = None
        if settings.history_retention_days > 0:
            deleted = RetentionSweeper(db).sweep(settings.history_retention_days, now)
            logger.info(
                f"Cleanup: removed {deleted} entries older than "
                f"{settings.history_retention_days} days"
            )

    return SyncReport(
        started_at=now,
        result=result,
        retention_days=settings.history_retention_days,
        deleted=deleted,
        elapsed=time.perf_counter() - start,
    )


def run_locked_sync(engine: Engine, settings: Settings, now: Optional[datetime] = None) -> SyncReport:
    """Run one sync cycle while holding the run lock.

    Raises:
        SyncAlreadyRunningError: another run holds the lock
    """
    with SyncLock(settings.lock_file):
        return run_sync_cycle(engine, settings, now)
