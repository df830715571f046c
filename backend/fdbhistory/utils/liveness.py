"""Liveness classification of history records.

Computed from last_seen at read time, never stored.
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

ACTIVE_WINDOW = timedelta(minutes=20)  # about one poll cycle
RECENT_WINDOW = timedelta(hours=2)


class Liveness(str, Enum):
    ACTIVE = "active"
    RECENT = "recent"
    HISTORICAL = "historical"


def utc_now() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def store_now(timezone_name: str = "UTC") -> datetime:
    """Current time as a naive datetime in the timezone the store is kept in.

    "local" follows the host clock, which is what tables written by the
    LibreNMS PHP sync script contain.
    """
    if timezone_name.upper() == "UTC":
        return utc_now()
    if timezone_name == "local":
        return datetime.now()
    return datetime.now(ZoneInfo(timezone_name)).replace(tzinfo=None)


def classify_liveness(last_seen: Optional[datetime], now: Optional[datetime] = None) -> Liveness:
    """Classify a record by how long ago it was last seen.

    Both windows are exclusive: a record seen exactly 20 minutes ago is
    already "recent", exactly 2 hours ago already "historical".
    """
    if last_seen is None:
        return Liveness.HISTORICAL

    age = (now or utc_now()) - last_seen
    if age < ACTIVE_WINDOW:
        return Liveness.ACTIVE
    if age < RECENT_WINDOW:
        return Liveness.RECENT
    return Liveness.HISTORICAL
