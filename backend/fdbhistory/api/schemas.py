"""Pydantic schemas for API request/response."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class HistoryQueryEcho(BaseModel):
    """Filters as received, unset ones as null."""

    mac: Optional[str] = None
    device: Optional[int] = None
    port: Optional[int] = None
    vlan: Optional[int] = None


class HistoryRecordResponse(BaseModel):
    mac_address: str
    mac_formatted: str
    vendor: Optional[str] = None
    hostname: Optional[str] = None
    sysName: Optional[str] = None
    device_id: int
    port_id: int
    ifName: Optional[str] = None
    ifDescr: Optional[str] = None
    ifAlias: Optional[str] = None
    vlan_vlan: Optional[int] = None
    vlan_name: Optional[str] = None
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None


class SearchStats(BaseModel):
    total: int = 0
    unique_macs: int = 0
    unique_devices: int = 0


class HistoryOverview(BaseModel):
    total: int = 0
    unique_macs: int = 0
    oldest: Optional[str] = None
    newest: Optional[str] = None


class HistorySearchResponse(BaseModel):
    query: HistoryQueryEcho
    count: int
    results: List[HistoryRecordResponse]
    truncated: bool = False
    error: Optional[str] = None
    stats: Optional[SearchStats] = None
    overview: Optional[HistoryOverview] = None


class PortHistoryResponse(BaseModel):
    port_id: int
    count: int
    truncated: bool = False
    results: List[HistoryRecordResponse]


class DeviceOption(BaseModel):
    device_id: int
    hostname: Optional[str] = None
    sysName: Optional[str] = None
    label: str


class PortOption(BaseModel):
    port_id: int
    ifName: Optional[str] = None
    ifAlias: Optional[str] = None
    label: str


class VlanOption(BaseModel):
    vlan_vlan: Optional[int] = None
    vlan_name: Optional[str] = None
    label: str


class RetentionPreview(BaseModel):
    retention_days: int
    enabled: bool
    cutoff_date: Optional[str] = None
    total_records: int = 0
    records_to_delete: int = 0
    records_to_keep: int = 0
    oldest_last_seen: Optional[str] = None


class SyncRunResponse(BaseModel):
    started_at: str
    source_count: int
    history_total: int
    inserted: int
    updated: int
    retention_days: int
    deleted: Optional[int] = None
    elapsed: float


class SchedulerStatus(BaseModel):
    enabled: bool
    is_running: bool
    interval_minutes: int
    next_run: Optional[str] = None
    last_result: Optional[Dict[str, Any]] = None
