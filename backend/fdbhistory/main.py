"""FDB History FastAPI Application.

Read-only query surface over fdb_history, plus maintenance endpoints.
The sync itself normally runs from cron (fdb-history-sync); set
SYNC_SCHEDULER_ENABLED=true to run it inside this process instead.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fdbhistory import __version__
from fdbhistory.api import history, maintenance
from fdbhistory.core.config import get_settings
from fdbhistory.db.database import get_db, has_table
from fdbhistory.services.sync.sync_scheduler import get_sync_scheduler
from fdbhistory.utils.liveness import utc_now

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("FDB History starting up...")

    sync_scheduler = get_sync_scheduler()
    if settings.sync_scheduler_enabled:
        sync_scheduler.start(
            interval_minutes=settings.sync_interval_minutes,
            enabled=True,
        )

    yield

    logger.info("FDB History shutting down...")
    sync_scheduler.stop()


app = FastAPI(
    title="FDB History",
    description="Historical MAC address to switch port mappings",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(history.router, prefix="/api/fdb-history", tags=["FDB History"])
app.include_router(maintenance.router, prefix="/api/maintenance", tags=["Maintenance"])


@app.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    try:
        history_ok = has_table(db.get_bind(), "fdb_history")
        database = "ok" if history_ok else "missing fdb_history"
    except SQLAlchemyError as e:
        logger.error(f"Health check could not reach the database: {e}")
        database = "unreachable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "timestamp": utc_now().isoformat(),
        "version": __version__,
        "services": {
            "database": database,
            "scheduler": "enabled" if settings.sync_scheduler_enabled else "disabled",
        },
    }
