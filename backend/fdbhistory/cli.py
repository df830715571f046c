"""Command line entry points.

fdb-history-sync  - one reconcile + retention batch, meant for cron:
    * * * * * librenms fdb-history-sync /opt/librenms >> /var/log/fdb-history-sync.log 2>&1

fdb-history-setup - create the fdb_history table once per database.

TARGET is either a database URL or a directory (or file) holding a .env with
DATABASE_URL. Without it the regular environment / ./.env settings apply.

Taking over an fdb_history table filled by the PHP sync script: that script
wrote host-local times, so set STORE_TIMEZONE=local (or the host's IANA zone)
to keep new rows, liveness and retention on the same clock.
"""
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from fdbhistory.core.config import Settings, get_settings
from fdbhistory.core.exceptions import (
    FdbHistoryError,
    StoreUnavailableError,
    SyncAlreadyRunningError,
)
from fdbhistory.core.log_config import configure_logging
from fdbhistory.db.database import create_db_engine
from fdbhistory.db.setup import create_history_table
from fdbhistory.services.sync.sync_job import run_locked_sync

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1


def load_settings(target: Optional[str]) -> Settings:
    """Resolve settings for a sync target.

    Raises:
        StoreUnavailableError: TARGET is neither a URL nor an existing path
    """
    if not target:
        return get_settings()
    if "://" in target:
        return Settings(database_url=target)

    path = Path(target)
    env_file = path / ".env" if path.is_dir() else path
    if not env_file.is_file():
        raise StoreUnavailableError(f"No database URL or .env file found at {target}")
    return Settings(_env_file=str(env_file))


def _safe_url(database_url: str) -> str:
    try:
        return make_url(database_url).render_as_string(hide_password=True)
    except (ArgumentError, ValueError):
        return "<invalid database url>"


def _build_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument(
        "target",
        nargs="?",
        default=None,
        help="Database URL, or a directory/file containing a .env with DATABASE_URL",
    )
    return parser


def sync_main(argv: Optional[List[str]] = None) -> int:
    """Run one sync batch. Returns the process exit code."""
    args = _build_parser(
        "fdb-history-sync", "Fold the live FDB table into fdb_history."
    ).parse_args(argv)

    try:
        settings = load_settings(args.target)
    except (StoreUnavailableError, ValueError) as e:
        configure_logging()
        logger.error(f"Invalid sync target: {e}")
        return EXIT_FATAL

    configure_logging(settings.log_level)
    logger.info(f"Starting FDB history sync (database: {_safe_url(settings.database_url)})")

    try:
        engine = create_db_engine(settings.database_url)
    except (SQLAlchemyError, ImportError) as e:
        logger.error(f"Cannot create database engine: {e}")
        return EXIT_FATAL

    try:
        report = run_locked_sync(engine, settings)
    except SyncAlreadyRunningError as e:
        logger.warning(f"Previous sync still running, skipping this run ({e})")
        return EXIT_OK
    except FdbHistoryError as e:
        logger.error(str(e))
        return EXIT_FATAL
    finally:
        engine.dispose()

    logger.info(report.summary_line())
    return EXIT_OK


def setup_main(argv: Optional[List[str]] = None) -> int:
    """Create the fdb_history table. Returns the process exit code."""
    args = _build_parser(
        "fdb-history-setup", "Create the fdb_history table."
    ).parse_args(argv)

    try:
        settings = load_settings(args.target)
    except (StoreUnavailableError, ValueError) as e:
        configure_logging()
        logger.error(f"Invalid setup target: {e}")
        return EXIT_FATAL

    configure_logging(settings.log_level)
    engine = None
    try:
        engine = create_db_engine(settings.database_url)
        create_history_table(engine)
    except (SQLAlchemyError, ImportError) as e:
        logger.error(f"Could not create fdb_history: {e}")
        return EXIT_FATAL
    finally:
        if engine is not None:
            engine.dispose()

    return EXIT_OK


def serve_main(argv: Optional[List[str]] = None) -> int:
    """Run the query API with uvicorn."""
    import uvicorn

    parser = argparse.ArgumentParser(prog="fdb-history-api", description="Serve the FDB history API.")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "fdbhistory.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=settings.debug,
    )
    return EXIT_OK
