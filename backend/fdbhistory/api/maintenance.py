"""Maintenance API endpoints: retention preview, manual sync, scheduler status."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fdbhistory.api.schemas import RetentionPreview, SchedulerStatus, SyncRunResponse
from fdbhistory.core.config import Settings, get_settings
from fdbhistory.core.exceptions import (
    FdbHistoryError,
    StoreUnavailableError,
    SyncAlreadyRunningError,
)
from fdbhistory.db.database import get_db
from fdbhistory.services.cleanup import RetentionSweeper
from fdbhistory.services.sync.sync_job import run_locked_sync, verify_history_store
from fdbhistory.services.sync.sync_scheduler import get_sync_scheduler
from fdbhistory.utils.liveness import store_now

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/retention", response_model=RetentionPreview)
def get_retention_preview(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Show what the next retention sweep would delete."""
    try:
        verify_history_store(db.get_bind())
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return RetentionSweeper(db).preview(
        settings.history_retention_days, store_now(settings.store_timezone)
    )


@router.post("/sync", response_model=SyncRunResponse)
def run_sync_now(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Run one sync batch now. Refused while another run holds the lock."""
    try:
        report = run_locked_sync(db.get_bind(), settings)
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except FdbHistoryError as e:
        logger.error(f"Manual FDB history sync failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(report.summary_line())
    return report.to_dict()


@router.get("/scheduler/status", response_model=SchedulerStatus)
def get_scheduler_status():
    """Current in-process sync scheduler status."""
    return get_sync_scheduler().get_status()
