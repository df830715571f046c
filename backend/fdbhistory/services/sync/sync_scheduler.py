"""In-process sync scheduler.

Alternative to the cron job for deployments that run the API: uses
APScheduler to run the same locked sync batch every few minutes.
"""

from typing import Optional, Dict, Any
import threading
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fdbhistory.core.config import get_settings
from fdbhistory.core.exceptions import FdbHistoryError, SyncAlreadyRunningError
from fdbhistory.db.database import get_engine
from fdbhistory.services.sync.sync_job import run_locked_sync
from fdbhistory.utils.liveness import utc_now

logger = logging.getLogger(__name__)

JOB_ID = "fdb_history_sync"


class SyncScheduler:
    """Scheduler for periodic FDB history synchronization."""

    _instance: Optional["SyncScheduler"] = None
    _lock = threading.Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True
        self._scheduler = BackgroundScheduler()
        self._enabled = False
        self._interval_minutes = 1
        self._last_result: Optional[Dict[str, Any]] = None
        self._is_running = False

    def start(self, interval_minutes: int = 1, enabled: bool = True):
        """Start the sync scheduler.

        Args:
            interval_minutes: Sync interval (default 1 min)
            enabled: Whether to enable automatic sync
        """
        self._interval_minutes = max(1, interval_minutes)
        self._enabled = enabled

        if not self._scheduler.running:
            self._scheduler.start()

        if enabled:
            self._schedule_job()
            logger.info(f"FDB history sync scheduler enabled: every {self._interval_minutes} minutes")
        else:
            logger.info("FDB history sync scheduler started (disabled)")

    def stop(self):
        """Stop the scheduler."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("FDB history sync scheduler stopped")

    def _schedule_job(self):
        """Schedule the sync job; a run never overlaps the previous one."""
        self._scheduler.add_job(
            self.run_sync,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id=JOB_ID,
            name="FDB History Sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def run_sync(self) -> Optional[Dict[str, Any]]:
        """Execute one sync batch and record its outcome."""
        if self._is_running:
            logger.warning("FDB history sync already running, skipping...")
            return None

        self._is_running = True
        try:
            report = run_locked_sync(get_engine(), get_settings())
            logger.info(report.summary_line())
            self._last_result = {"success": True, **report.to_dict()}
        except SyncAlreadyRunningError as e:
            logger.warning(f"FDB history sync skipped: {e}")
            self._last_result = {
                "success": False,
                "skipped": True,
                "error": str(e),
                "timestamp": utc_now().isoformat(),
            }
        except FdbHistoryError as e:
            logger.error(f"FDB history sync failed: {e}")
            self._last_result = {
                "success": False,
                "error": str(e),
                "timestamp": utc_now().isoformat(),
            }
        finally:
            self._is_running = False

        return self._last_result

    def get_status(self) -> Dict[str, Any]:
        """Get current scheduler status."""
        next_run = None
        job = self._scheduler.get_job(JOB_ID)
        if job and job.next_run_time:
            next_run = job.next_run_time.isoformat()

        return {
            "enabled": self._enabled,
            "is_running": self._is_running,
            "interval_minutes": self._interval_minutes,
            "next_run": next_run,
            "last_result": self._last_result,
        }


def get_sync_scheduler() -> SyncScheduler:
    """Get the singleton sync scheduler instance."""
    return SyncScheduler()
