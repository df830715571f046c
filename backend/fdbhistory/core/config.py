"""Application configuration."""
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database holding both ports_fdb (snapshot source) and fdb_history.
    # SQLite for development, MySQL/MariaDB for a live NMS database.
    database_url: str = "sqlite:///./fdbhistory.db"

    # Data Retention (0 = keep forever)
    history_retention_days: int = Field(default=365, ge=0)

    # Sync
    sync_interval_minutes: int = 1
    sync_scheduler_enabled: bool = False
    upsert_batch_size: int = 500
    lock_file: str = "/tmp/fdb-history-sync.lock"

    # Streak handling on re-observation: "extend" or "restart"
    streak_policy: Literal["extend", "restart"] = "extend"
    streak_gap_minutes: int = 60

    # Timezone of the naive first_seen / last_seen values: "UTC", "local"
    # (host clock, as the PHP sync script wrote them) or an IANA name.
    store_timezone: str = "UTC"

    # Query limits
    search_limit: int = 1000
    port_limit: int = 500
    trunk_mac_threshold: int = 20

    # Logging
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    @field_validator("store_timezone")
    @classmethod
    def known_timezone(cls, v):
        if v.upper() == "UTC" or v == "local":
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone '{v}'")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
