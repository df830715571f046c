"""Database connection and session management.

Engines are built from an explicit URL so the batch job, the API and the tests
can each point at their own store. The cached helpers below only serve the
API process.
"""
from functools import lru_cache

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from fdbhistory.core.config import get_settings


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def create_db_engine(database_url: str) -> Engine:
    """Create an engine configured for the database type."""
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,
                "timeout": 30,  # Wait up to 30 seconds for locked database
            },
        )

        # WAL lets readers keep working while a sync cycle writes
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def has_table(bind, table_name: str) -> bool:
    """Check whether a table exists on the given engine or connection."""
    return inspect(bind).has_table(table_name)


@lru_cache()
def get_engine() -> Engine:
    """Get the engine for the configured database."""
    return create_db_engine(get_settings().database_url)


@lru_cache()
def get_session_factory() -> sessionmaker:
    """Get the session factory for the configured database."""
    return make_session_factory(get_engine())


def get_db():
    """Dependency for database session."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
