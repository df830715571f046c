"""FDB history API endpoints.

Query parameters match the NMS plugin page: ``mac``, ``device``,
``port`` and ``vlan`` are optional, integers default to 0 meaning "unset".
``format=csv`` returns the same search as a CSV download.
"""
import csv
import io
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from fdbhistory.api.schemas import (
    DeviceOption,
    HistoryOverview,
    HistoryQueryEcho,
    HistoryRecordResponse,
    HistorySearchResponse,
    PortHistoryResponse,
    PortOption,
    SearchStats,
    VlanOption,
)
from fdbhistory.core.config import Settings, get_settings
from fdbhistory.core.exceptions import InvalidMacFilterError, StoreUnavailableError
from fdbhistory.db.database import get_db
from fdbhistory.services.history_query import (
    EnrichedRecord,
    HistoryFilter,
    HistoryQueryService,
    result_stats,
)
from fdbhistory.utils.liveness import store_now

logger = logging.getLogger(__name__)

router = APIRouter()

CSV_COLUMNS = [
    "mac_formatted",
    "vendor",
    "hostname",
    "sysName",
    "device_id",
    "port_id",
    "ifName",
    "ifAlias",
    "vlan_vlan",
    "vlan_name",
    "first_seen",
    "last_seen",
    "status",
]


def _positive_or_none(value: int):
    return value if value > 0 else None


def _store_unavailable(e: StoreUnavailableError) -> HTTPException:
    logger.error(f"FDB history query failed: {e}")
    return HTTPException(status_code=503, detail=str(e))


def _records_response(records: List[EnrichedRecord]) -> List[HistoryRecordResponse]:
    return [HistoryRecordResponse(**record.to_dict()) for record in records]


def _csv_response(records: List[EnrichedRecord], now: datetime) -> StreamingResponse:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for record in records:
        row = record.to_dict()
        row["status"] = record.liveness(now).value
        writer.writerow(row)
    output.seek(0)

    filename = f"fdb_history_{now.strftime('%Y%m%d_%H%M%S')}.csv"
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("", response_model=HistorySearchResponse)
def search_history(
    mac: str = Query("", description="Full or partial MAC in any notation (aa:bb, aabb.cc, AA-BB-CC)"),
    device: int = Query(0, description="Device ID, 0 = all"),
    port: int = Query(0, description="Port ID, 0 = all"),
    vlan: int = Query(0, description="VLAN number, 0 = all"),
    hide_trunks: bool = Query(False, description="Exclude ports that have seen many distinct MACs"),
    output_format: str = Query("json", alias="format", pattern="^(json|csv)$"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Search MAC to port history.

    Without any filter no search is run and the store overview is returned
    instead. An invalid MAC filter yields an empty result with ``error`` set.
    """
    raw_mac = mac.strip()
    filters = HistoryFilter(
        mac=raw_mac or None,
        device_id=_positive_or_none(device),
        port_id=_positive_or_none(port),
        vlan=_positive_or_none(vlan),
        hide_trunks=hide_trunks,
    )
    echo = HistoryQueryEcho(
        mac=raw_mac or None,
        device=filters.device_id,
        port=filters.port_id,
        vlan=filters.vlan,
    )
    service = HistoryQueryService(db, trunk_mac_threshold=settings.trunk_mac_threshold)

    records: List[EnrichedRecord] = []
    error = None
    overview = None
    try:
        if filters.is_empty:
            overview = HistoryOverview(**service.overview())
        else:
            records = service.search(filters, limit=settings.search_limit)
    except InvalidMacFilterError as e:
        error = str(e)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    if output_format == "csv":
        return _csv_response(records, store_now(settings.store_timezone))

    return HistorySearchResponse(
        query=echo,
        count=len(records),
        results=_records_response(records),
        truncated=len(records) >= settings.search_limit,
        error=error,
        stats=SearchStats(**result_stats(records)) if records else None,
        overview=overview,
    )


@router.get("/overview", response_model=HistoryOverview)
def get_overview(db: Session = Depends(get_db)):
    """Whole-store record count, unique MACs and time range."""
    try:
        return HistoryOverview(**HistoryQueryService(db).overview())
    except StoreUnavailableError as e:
        raise _store_unavailable(e)


@router.get("/ports/{port_id}", response_model=PortHistoryResponse)
def get_port_history(
    port_id: int,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """All MACs ever recorded on one port, newest first."""
    try:
        records = HistoryQueryService(db).port_history(port_id, limit=settings.port_limit)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)

    return PortHistoryResponse(
        port_id=port_id,
        count=len(records),
        truncated=len(records) >= settings.port_limit,
        results=_records_response(records),
    )


@router.get("/devices", response_model=List[DeviceOption])
def list_devices(db: Session = Depends(get_db)):
    """Devices present in the history."""
    try:
        return HistoryQueryService(db).devices()
    except StoreUnavailableError as e:
        raise _store_unavailable(e)


@router.get("/devices/{device_id}/ports", response_model=List[PortOption])
def list_device_ports(device_id: int, db: Session = Depends(get_db)):
    """Ports of a device present in the history."""
    try:
        return HistoryQueryService(db).ports(device_id)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)


@router.get("/devices/{device_id}/vlans", response_model=List[VlanOption])
def list_device_vlans(device_id: int, db: Session = Depends(get_db)):
    """VLANs of a device present in the history."""
    try:
        return HistoryQueryService(db).vlans(device_id)
    except StoreUnavailableError as e:
        raise _store_unavailable(e)
