"""FDB history retention sweep.

Deletes history records not seen within the retention period. A retention of
0 days means "keep forever" and turns the sweep into a no-op.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fdbhistory.core.exceptions import RetentionError
from fdbhistory.db.models import FdbHistory

logger = logging.getLogger(__name__)


def retention_cutoff(threshold_days: int, now: datetime) -> datetime:
    """Records with last_seen strictly before this are purged."""
    return now - timedelta(days=threshold_days)


class RetentionSweeper:
    """Purges aged-out fdb_history rows.

    Runs after a reconcile in the same batch, under the same run lock.
    """

    def __init__(self, db: Session):
        self.db = db

    def sweep(self, threshold_days: int, now: datetime) -> int:
        """Remove history not seen since ``threshold_days`` before ``now``.

        Args:
            threshold_days: Retention period in days, 0 disables purging
            now: Reference time for the cutoff

        Returns:
            Number of deleted records
        """
        if threshold_days < 0:
            raise ValueError("threshold_days must not be negative")
        if threshold_days == 0:
            logger.debug("History retention disabled, nothing to sweep")
            return 0

        cutoff = retention_cutoff(threshold_days, now)
        try:
            result = self.db.execute(
                delete(FdbHistory).where(FdbHistory.last_seen < cutoff)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error cleaning up FDB history: {e}")
            raise RetentionError(f"Retention sweep failed: {e}") from e

        deleted_count = result.rowcount or 0
        logger.debug(f"Removed {deleted_count} FDB history records last seen before {cutoff}")
        return deleted_count

    def preview(self, threshold_days: int, now: datetime) -> Dict[str, Any]:
        """Report what a sweep would delete, without deleting anything."""
        total_records = self.db.query(func.count(FdbHistory.id)).scalar() or 0
        oldest = self.db.query(func.min(FdbHistory.last_seen)).scalar()

        if threshold_days <= 0:
            return {
                "retention_days": threshold_days,
                "enabled": False,
                "cutoff_date": None,
                "total_records": total_records,
                "records_to_delete": 0,
                "records_to_keep": total_records,
                "oldest_last_seen": oldest.isoformat() if oldest else None,
            }

        cutoff = retention_cutoff(threshold_days, now)
        to_delete = self.db.query(func.count(FdbHistory.id)).filter(
            FdbHistory.last_seen < cutoff
        ).scalar() or 0

        return {
            "retention_days": threshold_days,
            "enabled": True,
            "cutoff_date": cutoff.isoformat(),
            "total_records": total_records,
            "records_to_delete": to_delete,
            "records_to_keep": total_records - to_delete,
            "oldest_last_seen": oldest.isoformat() if oldest else None,
        }
