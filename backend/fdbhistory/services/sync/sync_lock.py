"""Single-instance guard for sync runs.

Cron starts a new run every minute whether or not the previous one has
finished. Runs take an exclusive, non-blocking flock on a lock file; a run
that cannot get it must not touch the store.
"""
import fcntl
import logging
import os
from typing import Optional, TextIO

from fdbhistory.core.exceptions import SyncAlreadyRunningError

logger = logging.getLogger(__name__)


class SyncLock:
    """Exclusive file lock held for the duration of one sync run."""

    def __init__(self, path: str):
        self.path = path
        self._handle: Optional[TextIO] = None

    @property
    def is_held(self) -> bool:
        return self._handle is not None

    def acquire(self):
        """Take the lock or raise SyncAlreadyRunningError."""
        handle = open(self.path, "a+")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            raise SyncAlreadyRunningError(
                f"Another FDB history sync holds {self.path}"
            )

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        logger.debug(f"Acquired sync lock {self.path}")

    def release(self):
        if self._handle is None:
            return
        try:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None
        logger.debug(f"Released sync lock {self.path}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
