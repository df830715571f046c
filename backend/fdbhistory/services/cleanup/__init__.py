"""Retention services for FDB History."""
from fdbhistory.services.cleanup.history_cleanup_service import (
    RetentionSweeper,
    retention_cutoff,
)

__all__ = ["RetentionSweeper", "retention_cutoff"]
