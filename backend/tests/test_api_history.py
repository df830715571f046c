"""
Test suite for the FDB history and maintenance API.
Verifies the JSON shape of searches, validation errors, CSV export,
per-port listings, and the manual sync / retention endpoints.
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker

from conftest import T0, add_fdb, add_history, seed_reference_data
from fdbhistory.core.config import get_settings
from fdbhistory.db.database import get_db
from fdbhistory.db.models import FdbHistory
from fdbhistory.main import app
from fdbhistory.services.sync import SyncLock
from fdbhistory.utils.liveness import utc_now


@pytest.fixture
def sample_history(db_session):
    """One MAC moved from port 10 to port 20, plus a MAC on the core switch."""
    seed_reference_data(db_session)
    now = utc_now().replace(microsecond=0)
    add_history(db_session, "aabbccddee01", 5, 10, 1, now - timedelta(days=2), now - timedelta(hours=5))
    add_history(db_session, "aabbccddee01", 5, 20, 1, now - timedelta(hours=4), now - timedelta(minutes=1))
    add_history(db_session, "001122334455", 6, 48, 3, now - timedelta(days=1), now - timedelta(minutes=30))
    return now


# ============================================================
# SEARCH
# ============================================================

class TestSearchEndpoint:
    """GET /api/fdb-history"""

    def test_search_json_shape(self, client, sample_history):
        response = client.get("/api/fdb-history", params={"mac": "aa:bb:cc"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == {"mac": "aa:bb:cc", "device": None, "port": None, "vlan": None}
        assert data["count"] == 2
        assert data["error"] is None
        assert data["truncated"] is False
        first = data["results"][0]
        assert set(first) == {
            "mac_address", "mac_formatted", "vendor", "hostname", "sysName",
            "device_id", "port_id", "ifName", "ifDescr", "ifAlias",
            "vlan_vlan", "vlan_name", "first_seen", "last_seen",
        }
        assert first["port_id"] == 20
        assert first["mac_formatted"] == "aa:bb:cc:dd:ee:01"
        assert first["hostname"] == "sw-access-01"
        assert data["stats"] == {"total": 2, "unique_macs": 1, "unique_devices": 1}

    def test_zero_means_unset(self, client, sample_history):
        response = client.get("/api/fdb-history", params={"mac": "aabb", "device": 0, "port": 0, "vlan": 0})

        data = response.json()
        assert data["query"]["device"] is None
        assert data["count"] == 2

    def test_combined_filters(self, client, sample_history):
        response = client.get("/api/fdb-history", params={"device": 5, "port": 10})

        data = response.json()
        assert data["count"] == 1
        assert data["results"][0]["ifName"] == "Gi1/0/10"

    def test_vlan_filter(self, client, sample_history):
        response = client.get("/api/fdb-history", params={"vlan": 100, "device": 6})

        assert response.json()["results"][0]["mac_address"] == "001122334455"

    @pytest.mark.parametrize("mac,message", [
        ("::", "at least a few hex"),
        ("aabbccddeeff00", "too long"),
    ])
    def test_invalid_mac_returns_error_not_500(self, client, sample_history, mac, message):
        response = client.get("/api/fdb-history", params={"mac": mac})

        assert response.status_code == 200
        data = response.json()
        assert message in data["error"]
        assert data["count"] == 0
        assert data["results"] == []

    def test_no_filters_returns_overview(self, client, sample_history):
        response = client.get("/api/fdb-history")

        data = response.json()
        assert data["count"] == 0
        assert data["overview"]["total"] == 3
        assert data["overview"]["unique_macs"] == 2

    def test_truncation_flag(self, client, db_session, test_settings):
        test_settings.search_limit = 3
        for i in range(5):
            add_history(db_session, f"aabbccddee{i:02x}", 5, 10, 1, T0, T0)

        data = client.get("/api/fdb-history", params={"mac": "aabb"}).json()

        assert data["count"] == 3
        assert data["truncated"] is True

    def test_hide_trunks(self, client, db_session):
        for i in range(21):
            add_history(db_session, f"0011223344{i:02x}", 6, 48, 3, T0, T0)
        add_history(db_session, "001122aaaaaa", 5, 10, 1, T0, T0)

        data = client.get("/api/fdb-history", params={"mac": "001122", "hide_trunks": True}).json()

        assert data["count"] == 1
        assert data["results"][0]["port_id"] == 10

    def test_invalid_format_rejected(self, client):
        response = client.get("/api/fdb-history", params={"mac": "aabb", "format": "xml"})

        assert response.status_code == 422


class TestCsvExport:
    """GET /api/fdb-history?format=csv"""

    def test_csv_export(self, client, sample_history):
        response = client.get("/api/fdb-history", params={"mac": "aabb", "format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("mac_formatted,vendor,hostname")
        assert len(lines) == 3
        assert lines[1].startswith("aa:bb:cc:dd:ee:01")
        assert lines[1].endswith("active")
        assert lines[2].endswith("historical")

    def test_csv_invalid_filter_is_header_only(self, client, sample_history):
        response = client.get("/api/fdb-history", params={"mac": "::", "format": "csv"})

        assert response.status_code == 200
        assert len(response.text.strip().splitlines()) == 1


# ============================================================
# PORT LISTING AND PICKERS
# ============================================================

class TestPortAndPickers:

    def test_port_history(self, client, sample_history):
        response = client.get("/api/fdb-history/ports/20")

        data = response.json()
        assert data["port_id"] == 20
        assert data["count"] == 1
        assert data["truncated"] is False

    def test_port_history_cap(self, client, db_session, test_settings):
        test_settings.port_limit = 2
        for i in range(4):
            add_history(db_session, f"aabbccddee{i:02x}", 5, 10, 1, T0, T0)

        data = client.get("/api/fdb-history/ports/10").json()

        assert data["count"] == 2
        assert data["truncated"] is True

    def test_overview(self, client, sample_history):
        data = client.get("/api/fdb-history/overview").json()

        assert data["total"] == 3

    def test_devices(self, client, sample_history):
        data = client.get("/api/fdb-history/devices").json()

        assert [d["label"] for d in data] == ["sw-access-01", "sw-core-01"]

    def test_device_ports_and_vlans(self, client, sample_history):
        ports = client.get("/api/fdb-history/devices/5/ports").json()
        vlans = client.get("/api/fdb-history/devices/5/vlans").json()

        assert [p["port_id"] for p in ports] == [10, 20]
        assert vlans == [{"vlan_vlan": 100, "vlan_name": "users", "label": "100 - users"}]


# ============================================================
# MAINTENANCE
# ============================================================

class TestMaintenance:
    """Manual sync and retention preview."""

    def test_manual_sync(self, client, db_session):
        add_fdb(db_session, "aabbccddee01", 5, 10, 1)
        add_fdb(db_session, "aabbccddee02", 5, None, None)

        response = client.post("/api/maintenance/sync")

        assert response.status_code == 200
        data = response.json()
        assert data["source_count"] == 2
        assert data["inserted"] == 2
        assert data["updated"] == 0
        assert data["history_total"] == 2
        assert data["deleted"] == 0
        db_session.expire_all()
        assert db_session.query(FdbHistory).count() == 2

    def test_manual_sync_refused_while_locked(self, client, test_settings):
        with SyncLock(test_settings.lock_file):
            response = client.post("/api/maintenance/sync")

        assert response.status_code == 409

    def test_retention_preview(self, client, db_session):
        now = utc_now()
        add_history(db_session, "aabbccddee01", 5, 10, 1, now - timedelta(days=400), now - timedelta(days=400))
        add_history(db_session, "aabbccddee02", 5, 10, 1, now, now)

        data = client.get("/api/maintenance/retention").json()

        assert data["retention_days"] == 365
        assert data["enabled"] is True
        assert data["records_to_delete"] == 1
        assert data["records_to_keep"] == 1

    def test_scheduler_status(self, client):
        data = client.get("/api/maintenance/scheduler/status").json()

        assert set(data) == {"enabled", "is_running", "interval_minutes", "next_run", "last_result"}


# ============================================================
# HEALTH AND STORE AVAILABILITY
# ============================================================

class TestHealth:

    def test_health(self, client):
        data = client.get("/api/health").json()

        assert data["status"] == "healthy"
        assert data["services"]["database"] == "ok"


@pytest.fixture
def client_without_history(engine_without_history, test_settings):
    """Client against a database where fdb_history was never created."""
    session_factory = sessionmaker(bind=engine_without_history)

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


class TestMissingHistoryTable:
    """Missing fdb_history is reported, never created."""

    def test_search_503(self, client_without_history):
        response = client_without_history.get("/api/fdb-history", params={"mac": "aabb"})

        assert response.status_code == 503
        assert "fdb-history-setup" in response.json()["detail"]

    def test_sync_503(self, client_without_history, engine_without_history):
        response = client_without_history.post("/api/maintenance/sync")

        assert response.status_code == 503
        assert not inspect(engine_without_history).has_table("fdb_history")

    def test_health_degraded(self, client_without_history):
        data = client_without_history.get("/api/health").json()

        assert data["status"] == "degraded"
        assert data["services"]["database"] == "missing fdb_history"
