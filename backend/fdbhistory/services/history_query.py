"""Read-only access to fdb_history.

Answers filtered lookups joined with the NMS reference tables (devices,
ports, vlans and, when present, vendors). Returns structured records only;
rendering is left to the caller.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fdbhistory.core.exceptions import StoreUnavailableError
from fdbhistory.db.database import has_table
from fdbhistory.db.models import Device, FdbHistory, Port, Vendor, Vlan
from fdbhistory.utils.liveness import Liveness, classify_liveness
from fdbhistory.utils.mac_utils import MAC_SEPARATORS, format_mac, normalize_mac_filter

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 1000
DEFAULT_PORT_LIMIT = 500
DEFAULT_TRUNK_MAC_THRESHOLD = 20

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _fmt_ts(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(TIMESTAMP_FORMAT) if value else None


@dataclass
class HistoryFilter:
    """Search filters. None or 0 means "not filtered"; all set filters are ANDed."""

    mac: Optional[str] = None
    device_id: Optional[int] = None
    port_id: Optional[int] = None
    vlan: Optional[int] = None  # VLAN number, not vlans.vlan_id
    hide_trunks: bool = False

    @property
    def is_empty(self) -> bool:
        return (
            self.mac is None
            and not self.device_id
            and not self.port_id
            and not self.vlan
        )


@dataclass
class StoreCapabilities:
    """Optional tables, resolved once per call."""

    has_vendors: bool


@dataclass
class EnrichedRecord:
    """A history record joined with its device, port, VLAN and vendor labels."""

    id: int
    mac_address: str
    device_id: int
    port_id: int
    vlan_id: int
    first_seen: datetime
    last_seen: datetime
    hostname: Optional[str] = None
    sysName: Optional[str] = None
    ifName: Optional[str] = None
    ifDescr: Optional[str] = None
    ifAlias: Optional[str] = None
    vlan_vlan: Optional[int] = None
    vlan_name: Optional[str] = None
    vendor: Optional[str] = None

    @property
    def mac_formatted(self) -> str:
        return format_mac(self.mac_address)

    @property
    def port_label(self) -> str:
        return self.ifName or self.ifDescr or f"port #{self.port_id}"

    def liveness(self, now: Optional[datetime] = None) -> Liveness:
        return classify_liveness(self.last_seen, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mac_address": self.mac_address,
            "mac_formatted": self.mac_formatted,
            "vendor": self.vendor,
            "hostname": self.hostname,
            "sysName": self.sysName,
            "device_id": self.device_id,
            "port_id": self.port_id,
            "ifName": self.ifName,
            "ifDescr": self.ifDescr,
            "ifAlias": self.ifAlias,
            "vlan_vlan": self.vlan_vlan,
            "vlan_name": self.vlan_name,
            "first_seen": _fmt_ts(self.first_seen),
            "last_seen": _fmt_ts(self.last_seen),
        }


def stored_mac_hex(column):
    """SQL expression for a stored MAC with separators removed, lowercased."""
    expr = column
    for separator in MAC_SEPARATORS:
        expr = func.replace(expr, separator, "")
    return func.lower(expr)


def result_stats(records: List[EnrichedRecord]) -> Dict[str, int]:
    """Summary counts over a result set."""
    return {
        "total": len(records),
        "unique_macs": len({r.mac_address for r in records}),
        "unique_devices": len({r.device_id for r in records if r.device_id}),
    }


class HistoryQueryService:
    """Filtered, bounded reads over the history store."""

    def __init__(self, db: Session, trunk_mac_threshold: int = DEFAULT_TRUNK_MAC_THRESHOLD):
        self.db = db
        self.trunk_mac_threshold = trunk_mac_threshold

    def capabilities(self) -> StoreCapabilities:
        """Check the history table and optional reference tables.

        Raises:
            StoreUnavailableError: fdb_history missing or store unreachable
        """
        bind = self.db.get_bind()
        try:
            if not has_table(bind, FdbHistory.__tablename__):
                raise StoreUnavailableError(
                    "Table 'fdb_history' does not exist. Run 'fdb-history-setup' first."
                )
            has_vendors = has_table(bind, Vendor.__tablename__)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"History store unavailable: {e}") from e
        return StoreCapabilities(has_vendors=has_vendors)

    def search(self, filters: HistoryFilter, limit: int = DEFAULT_SEARCH_LIMIT) -> List[EnrichedRecord]:
        """Search history, newest last_seen first, never more than ``limit`` rows.

        Raises:
            InvalidMacFilterError: MAC filter cannot match anything; no query is run
            StoreUnavailableError: fdb_history missing or store unreachable
        """
        needle = normalize_mac_filter(filters.mac) if filters.mac is not None else None
        caps = self.capabilities()

        query = self._base_query(caps)
        if needle:
            query = query.filter(stored_mac_hex(FdbHistory.mac_address).like(f"%{needle}%"))
        if filters.device_id:
            query = query.filter(FdbHistory.device_id == filters.device_id)
        if filters.port_id:
            query = query.filter(FdbHistory.port_id == filters.port_id)
        if filters.vlan:
            query = query.filter(Vlan.vlan_vlan == filters.vlan)
        if filters.hide_trunks:
            query = query.filter(FdbHistory.port_id.notin_(self._trunk_ports_subquery()))

        rows = (
            query.order_by(FdbHistory.last_seen.desc(), FdbHistory.id.desc())
            .limit(max(0, limit))
            .all()
        )
        logger.debug(f"FDB history search {filters} returned {len(rows)} rows (limit {limit})")
        return [self._to_record(row, caps) for row in rows]

    def port_history(self, port_id: int, limit: int = DEFAULT_PORT_LIMIT) -> List[EnrichedRecord]:
        """Every MAC ever recorded on one port."""
        return self.search(HistoryFilter(port_id=port_id), limit=limit)

    def overview(self) -> Dict[str, Any]:
        """Whole-store summary: record count, unique MACs, time range."""
        self.capabilities()
        total, unique_macs, oldest, newest = self.db.query(
            func.count(FdbHistory.id),
            func.count(distinct(FdbHistory.mac_address)),
            func.min(FdbHistory.first_seen),
            func.max(FdbHistory.last_seen),
        ).one()
        return {
            "total": total or 0,
            "unique_macs": unique_macs or 0,
            "oldest": _fmt_ts(oldest),
            "newest": _fmt_ts(newest),
        }

    def devices(self) -> List[Dict[str, Any]]:
        """Devices that appear in the history, for device pickers."""
        self.capabilities()
        rows = (
            self.db.query(Device.device_id, Device.hostname, Device.sysName)
            .join(FdbHistory, FdbHistory.device_id == Device.device_id)
            .distinct()
            .order_by(Device.hostname)
            .all()
        )
        return [
            {
                "device_id": row.device_id,
                "hostname": row.hostname,
                "sysName": row.sysName,
                "label": row.hostname or row.sysName or f"Device #{row.device_id}",
            }
            for row in rows
        ]

    def ports(self, device_id: int) -> List[Dict[str, Any]]:
        """Ports of a device that appear in the history."""
        self.capabilities()
        rows = (
            self.db.query(Port.port_id, Port.ifName, Port.ifDescr, Port.ifAlias)
            .join(FdbHistory, FdbHistory.port_id == Port.port_id)
            .filter(FdbHistory.device_id == device_id)
            .distinct()
            .order_by(Port.ifName)
            .all()
        )
        return [
            {
                "port_id": row.port_id,
                "ifName": row.ifName,
                "ifAlias": row.ifAlias,
                "label": row.ifName or row.ifDescr or f"port #{row.port_id}",
            }
            for row in rows
        ]

    def vlans(self, device_id: int) -> List[Dict[str, Any]]:
        """VLANs of a device that appear in the history."""
        self.capabilities()
        rows = (
            self.db.query(Vlan.vlan_vlan, Vlan.vlan_name)
            .join(FdbHistory, FdbHistory.vlan_id == Vlan.vlan_id)
            .filter(FdbHistory.device_id == device_id)
            .distinct()
            .order_by(Vlan.vlan_vlan)
            .all()
        )
        return [
            {
                "vlan_vlan": row.vlan_vlan,
                "vlan_name": row.vlan_name,
                "label": f"{row.vlan_vlan} - {row.vlan_name}" if row.vlan_name else str(row.vlan_vlan),
            }
            for row in rows
        ]

    def _base_query(self, caps: StoreCapabilities):
        query = (
            self.db.query(
                FdbHistory.id,
                FdbHistory.mac_address,
                FdbHistory.device_id,
                FdbHistory.port_id,
                FdbHistory.vlan_id,
                FdbHistory.first_seen,
                FdbHistory.last_seen,
                Device.hostname,
                Device.sysName,
                Port.ifName,
                Port.ifDescr,
                Port.ifAlias,
                Vlan.vlan_vlan,
                Vlan.vlan_name,
            )
            .outerjoin(Device, Device.device_id == FdbHistory.device_id)
            .outerjoin(Port, Port.port_id == FdbHistory.port_id)
            .outerjoin(Vlan, Vlan.vlan_id == FdbHistory.vlan_id)
        )
        if caps.has_vendors:
            query = query.add_columns(Vendor.vendor).outerjoin(
                Vendor,
                Vendor.oui == func.upper(func.substr(FdbHistory.mac_address, 1, 6)),
            )
        return query

    def _trunk_ports_subquery(self):
        """Ports that have seen more distinct MACs than an access port would."""
        return (
            select(FdbHistory.port_id)
            .where(FdbHistory.port_id != 0)
            .group_by(FdbHistory.port_id)
            .having(func.count(distinct(FdbHistory.mac_address)) > self.trunk_mac_threshold)
        )

    @staticmethod
    def _to_record(row, caps: StoreCapabilities) -> EnrichedRecord:
        return EnrichedRecord(
            id=row.id,
            mac_address=row.mac_address,
            device_id=row.device_id,
            port_id=row.port_id,
            vlan_id=row.vlan_id,
            first_seen=row.first_seen,
            last_seen=row.last_seen,
            hostname=row.hostname,
            sysName=row.sysName,
            ifName=row.ifName,
            ifDescr=row.ifDescr,
            ifAlias=row.ifAlias,
            vlan_vlan=row.vlan_vlan,
            vlan_name=row.vlan_name,
            vendor=row.vendor if caps.has_vendors else None,
        )
