"""
Test suite for liveness classification.
"""
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from conftest import T0
from fdbhistory.core.config import Settings
from fdbhistory.utils.liveness import Liveness, classify_liveness, store_now, utc_now


class TestClassifyLiveness:
    """Both window boundaries are exclusive."""

    def test_nineteen_minutes_is_active(self):
        assert classify_liveness(T0 - timedelta(minutes=19), T0) == Liveness.ACTIVE

    def test_twenty_minutes_is_recent(self):
        assert classify_liveness(T0 - timedelta(minutes=20), T0) == Liveness.RECENT

    def test_just_under_two_hours_is_recent(self):
        assert classify_liveness(T0 - timedelta(hours=1, minutes=59), T0) == Liveness.RECENT

    def test_two_hours_is_historical(self):
        assert classify_liveness(T0 - timedelta(hours=2), T0) == Liveness.HISTORICAL

    def test_just_seen(self):
        assert classify_liveness(T0, T0) == Liveness.ACTIVE

    def test_missing_last_seen(self):
        assert classify_liveness(None, T0) == Liveness.HISTORICAL

    def test_value_is_plain_string(self):
        assert Liveness.RECENT.value == "recent"


class TestStoreNow:
    """Current time in the timezone the store's timestamps use."""

    def test_utc(self):
        before = utc_now()
        now = store_now("UTC")

        assert now.tzinfo is None
        assert timedelta(0) <= now - before < timedelta(seconds=5)

    def test_local_follows_host_clock(self):
        before = datetime.now()
        now = store_now("local")

        assert now.tzinfo is None
        assert timedelta(0) <= now - before < timedelta(seconds=5)

    def test_setting_accepts_utc_and_local(self):
        assert Settings(store_timezone="local").store_timezone == "local"
        assert Settings().store_timezone == "UTC"

    def test_setting_rejects_unknown_zone(self):
        with pytest.raises(ValidationError, match="Unknown timezone"):
            Settings(store_timezone="Mars/Olympus_Mons")
