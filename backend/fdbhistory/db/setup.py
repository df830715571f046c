"""Explicit creation of the fdb_history table.

The sync job never creates schema on its own; operators run this once per
database. Only fdb_history is created, the reference tables belong to the NMS.
"""
import logging

from sqlalchemy.engine import Engine

from fdbhistory.db.database import has_table
from fdbhistory.db.models import FdbHistory

logger = logging.getLogger(__name__)


def create_history_table(engine: Engine) -> bool:
    """Create fdb_history with its unique key and indexes.

    Returns:
        True if the table was created, False if it already existed
    """
    if has_table(engine, FdbHistory.__tablename__):
        logger.info("Table 'fdb_history' already exists, nothing to do")
        return False

    FdbHistory.__table__.create(bind=engine)
    logger.info("Table 'fdb_history' created")
    return True
