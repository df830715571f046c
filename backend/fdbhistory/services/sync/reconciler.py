"""FDB history reconciler.

Folds one snapshot of the live forwarding database into fdb_history.

The unique key (mac_address, device_id, port_id, vlan_id) drives the logic:
- First time MAC seen on this port -> INSERT (first_seen = last_seen = now)
- Same MAC still on same port      -> UPDATE last_seen = now (first_seen unchanged)
- MAC moved to a new port          -> INSERT new row; old row's last_seen stops updating
- MAC gone from the snapshot       -> row left untouched (history kept)

The whole snapshot is written as one transaction using the dialect's native
upsert, so a failed cycle leaves the store exactly as it was.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fdbhistory.core.exceptions import ReconcileError
from fdbhistory.db.models import FdbHistory, PortsFdb
from fdbhistory.utils.mac_utils import canonical_mac

logger = logging.getLogger(__name__)

# (mac_address, device_id, port_id, vlan_id)
HistoryKey = Tuple[str, int, int, int]

SUPPORTED_DIALECTS = ("sqlite", "postgresql", "mysql", "mariadb")


class StreakPolicy(str, Enum):
    """What a re-observation after a gap does to first_seen."""

    EXTEND = "extend"  # always keep first_seen, only bump last_seen
    RESTART = "restart"  # reset first_seen when last_seen is older than the gap


@dataclass(frozen=True)
class Observation:
    """A MAC seen on a device port/VLAN in the current snapshot."""

    mac_address: str
    device_id: int
    port_id: Optional[int] = None
    vlan_id: Optional[int] = None

    def key(self) -> HistoryKey:
        """Identity key with missing port/VLAN mapped to 0."""
        return (
            canonical_mac(self.mac_address),
            int(self.device_id),
            int(self.port_id or 0),
            int(self.vlan_id or 0),
        )


@dataclass
class ReconcileResult:
    """Counts reported by one reconciliation cycle."""

    source_count: int
    history_total: int
    inserted: int
    updated: int

    def to_dict(self):
        return asdict(self)


def _chunks(items: List[HistoryKey], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class Reconciler:
    """Applies observation snapshots to the history store.

    Must not run concurrently with another Reconciler against the same
    store: the insert count is derived from the table size before and after
    the upsert.
    """

    def __init__(
        self,
        db: Session,
        streak_policy: StreakPolicy = StreakPolicy.EXTEND,
        streak_gap: timedelta = timedelta(hours=1),
        batch_size: int = 500,
    ):
        """Initialize the reconciler.

        Args:
            db: Session bound to the history store
            streak_policy: Behaviour when a key reappears after a gap
            streak_gap: Gap after which RESTART opens a new streak
            batch_size: Rows per INSERT statement (all in one transaction)
        """
        self.db = db
        self.streak_policy = StreakPolicy(streak_policy)
        self.streak_gap = streak_gap
        self.batch_size = max(1, batch_size)

    def reconcile(self, snapshot: Iterable[Observation], now: datetime) -> ReconcileResult:
        """Fold a snapshot into fdb_history using a single timestamp.

        Raises:
            ReconcileError: if any write fails; nothing is committed.
        """
        observations = list(snapshot)
        keys = self._distinct_keys(observations)
        dialect = self._dialect()

        try:
            before_count = self._history_count()
            for chunk in _chunks(sorted(keys), self.batch_size):
                self.db.execute(self._upsert_statement(dialect, chunk, now))
            after_count = self._history_count()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"FDB history reconcile failed, rolled back: {e}")
            raise ReconcileError(f"Reconcile failed: {e}") from e

        inserted = after_count - before_count
        result = ReconcileResult(
            source_count=len(observations),
            history_total=after_count,
            inserted=inserted,
            updated=len(keys) - inserted,
        )
        logger.debug(f"Reconcile result: {result}")
        return result

    def reconcile_from_source(self, now: datetime) -> ReconcileResult:
        """Reconcile using the current contents of ports_fdb as the snapshot."""
        return self.reconcile(self.read_snapshot(), now)

    def read_snapshot(self) -> List[Observation]:
        """Read the live FDB table into observations."""
        try:
            rows = self.db.query(
                PortsFdb.mac_address,
                PortsFdb.device_id,
                PortsFdb.port_id,
                PortsFdb.vlan_id,
            ).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ReconcileError(f"Could not read ports_fdb: {e}") from e

        return [
            Observation(
                mac_address=row.mac_address,
                device_id=row.device_id,
                port_id=row.port_id,
                vlan_id=row.vlan_id,
            )
            for row in rows
        ]

    def _distinct_keys(self, observations: List[Observation]) -> Set[HistoryKey]:
        keys: Set[HistoryKey] = set()
        skipped = 0
        for observation in observations:
            key = observation.key()
            if not key[0]:
                skipped += 1
                continue
            keys.add(key)
        if skipped:
            logger.warning(f"Skipped {skipped} snapshot rows without a MAC address")
        return keys

    def _dialect(self) -> str:
        name = self.db.get_bind().dialect.name
        if name not in SUPPORTED_DIALECTS:
            raise ReconcileError(f"Upsert not supported for database dialect '{name}'")
        return name

    def _history_count(self) -> int:
        return self.db.execute(select(func.count(FdbHistory.id))).scalar() or 0

    def _first_seen_on_conflict(self, incoming_first_seen, now: datetime):
        """first_seen assignment for RESTART: new streak if the gap was too long."""
        table = FdbHistory.__table__
        cutoff = now - self.streak_gap
        return case(
            (table.c.last_seen < cutoff, incoming_first_seen),
            else_=table.c.first_seen,
        )

    def _upsert_statement(self, dialect: str, keys: List[HistoryKey], now: datetime):
        table = FdbHistory.__table__
        values = [
            {
                "mac_address": mac_address,
                "device_id": device_id,
                "port_id": port_id,
                "vlan_id": vlan_id,
                "first_seen": now,
                "last_seen": now,
            }
            for mac_address, device_id, port_id, vlan_id in keys
        ]
        restart = self.streak_policy == StreakPolicy.RESTART

        if dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(table).values(values)
            # MySQL applies assignments left to right: first_seen must read
            # the old last_seen, so it goes first.
            updates = []
            if restart:
                updates.append(
                    ("first_seen", self._first_seen_on_conflict(stmt.inserted.first_seen, now))
                )
            updates.append(("last_seen", stmt.inserted.last_seen))
            return stmt.on_duplicate_key_update(updates)

        dialect_module = sqlite if dialect == "sqlite" else postgresql
        stmt = dialect_module.insert(table).values(values)
        updates = {"last_seen": stmt.excluded.last_seen}
        if restart:
            updates["first_seen"] = self._first_seen_on_conflict(stmt.excluded.first_seen, now)
        return stmt.on_conflict_do_update(
            index_elements=[
                table.c.mac_address,
                table.c.device_id,
                table.c.port_id,
                table.c.vlan_id,
            ],
            set_=updates,
        )
