"""Database models for FDB History.

Only ``fdb_history`` is owned by this project. The other tables belong to the
host NMS (LibreNMS layout) and are mapped read-only so they can be joined.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from fdbhistory.db.database import Base


class FdbHistory(Base):
    """One contiguous span of a MAC seen on a device/port/VLAN."""

    __tablename__ = "fdb_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mac_address: Mapped[str] = mapped_column(String(32), nullable=False)
    device_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # 0 when the source row had no port / VLAN
    port_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vlan_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_seen: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "mac_address", "device_id", "port_id", "vlan_id",
            name="uniq_mac_device_port_vlan",
        ),
        Index("ix_fdb_history_last_seen", "last_seen"),
        Index("ix_fdb_history_port_id", "port_id"),
        Index("ix_fdb_history_device_id", "device_id"),
    )


class PortsFdb(Base):
    """Live forwarding database snapshot, refreshed by the NMS poller."""

    __tablename__ = "ports_fdb"

    ports_fdb_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    port_id: Mapped[Optional[int]] = mapped_column(Integer)  # NULL on some Cisco FDBs
    mac_address: Mapped[str] = mapped_column(String(32), nullable=False)
    vlan_id: Mapped[Optional[int]] = mapped_column(Integer)
    device_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)


class Device(Base):
    """Network device directory."""

    __tablename__ = "devices"

    device_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hostname: Mapped[Optional[str]] = mapped_column(String(128))
    sysName: Mapped[Optional[str]] = mapped_column(String(128))


class Port(Base):
    """Port directory."""

    __tablename__ = "ports"

    port_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    device_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ifName: Mapped[Optional[str]] = mapped_column(String(64))
    ifDescr: Mapped[Optional[str]] = mapped_column(String(255))
    ifAlias: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (Index("ix_ports_device_id", "device_id"),)


class Vlan(Base):
    """VLAN directory."""

    __tablename__ = "vlans"

    vlan_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    device_id: Mapped[Optional[int]] = mapped_column(Integer)
    vlan_vlan: Mapped[Optional[int]] = mapped_column(Integer)  # 802.1Q VLAN number
    vlan_name: Mapped[Optional[str]] = mapped_column(String(64))


class Vendor(Base):
    """OUI vendor directory. Missing on older installs."""

    __tablename__ = "vendors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    oui: Mapped[str] = mapped_column(String(12), nullable=False, unique=True)
    vendor: Mapped[str] = mapped_column(String(255), nullable=False)
