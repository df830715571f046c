"""
Shared fixtures for the FDB History test suite.

Provides:
- In-memory SQLite store with the NMS reference tables and fdb_history
- Seeded devices / ports / VLANs / vendors
- FastAPI TestClient with database and settings overrides
"""
import logging
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fdbhistory.core.config import Settings, get_settings
from fdbhistory.db.database import Base, get_db
from fdbhistory.db.models import Device, FdbHistory, Port, PortsFdb, Vendor, Vlan
from fdbhistory.main import app

# Fixed reference time for every test
T0 = datetime(2026, 3, 1, 12, 0, 0)


def _memory_engine():
    return create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def engine():
    """Fresh in-memory store with every table."""
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def engine_without_vendors():
    """Store of an older install without the vendors table."""
    engine = _memory_engine()
    tables = [t for t in Base.metadata.sorted_tables if t.name != Vendor.__tablename__]
    Base.metadata.create_all(bind=engine, tables=tables)
    yield engine
    engine.dispose()


@pytest.fixture
def engine_without_history():
    """NMS database on which fdb-history-setup was never run."""
    engine = _memory_engine()
    tables = [t for t in Base.metadata.sorted_tables if t.name != FdbHistory.__tablename__]
    Base.metadata.create_all(bind=engine, tables=tables)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Database session fixture."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def test_settings(tmp_path):
    """Settings with the run lock kept inside the test directory."""
    return Settings(
        database_url="sqlite:///:memory:",
        lock_file=str(tmp_path / "fdb-history-sync.lock"),
        history_retention_days=365,
    )


def seed_reference_data(db):
    """Two switches with ports and VLANs, plus a couple of vendors."""
    db.add_all([
        Device(device_id=5, hostname="sw-access-01", sysName="sw-access-01.example.net"),
        Device(device_id=6, hostname="sw-core-01", sysName="sw-core-01.example.net"),
        Port(port_id=10, device_id=5, ifName="Gi1/0/10", ifDescr="GigabitEthernet1/0/10", ifAlias="Desk 10"),
        Port(port_id=20, device_id=5, ifName="Gi1/0/20", ifDescr="GigabitEthernet1/0/20", ifAlias="Desk 20"),
        Port(port_id=48, device_id=6, ifName="Te1/1/1", ifDescr="TenGigabitEthernet1/1/1", ifAlias="Uplink"),
        Vlan(vlan_id=1, device_id=5, vlan_vlan=100, vlan_name="users"),
        Vlan(vlan_id=2, device_id=5, vlan_vlan=200, vlan_name="voice"),
        Vlan(vlan_id=3, device_id=6, vlan_vlan=100, vlan_name="users"),
    ])
    db.commit()


def seed_vendors(db):
    db.add_all([
        Vendor(oui="AABBCC", vendor="Acme Networks"),
        Vendor(oui="001122", vendor="Example Corp"),
    ])
    db.commit()


def add_history(db, mac, device_id, port_id, vlan_id, first_seen, last_seen):
    record = FdbHistory(
        mac_address=mac,
        device_id=device_id,
        port_id=port_id,
        vlan_id=vlan_id,
        first_seen=first_seen,
        last_seen=last_seen,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def add_fdb(db, mac, device_id, port_id=None, vlan_id=None):
    entry = PortsFdb(mac_address=mac, device_id=device_id, port_id=port_id, vlan_id=vlan_id)
    db.add(entry)
    db.commit()
    return entry


@pytest.fixture
def client(session_factory, test_settings):
    """Test client bound to the in-memory store."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    before = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before and type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
    root.setLevel(level)
