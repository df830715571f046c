"""Logging setup for the command line jobs.

Cron appends stdout to a log file, so every line carries its own timestamp.
Errors go to stderr.
"""
import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(message)s"
ERROR_FORMAT = "[%(asctime)s] [ERROR] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _BelowErrorFilter(logging.Filter):
    def filter(self, record):
        return record.levelno < logging.ERROR


def configure_logging(level: str = "INFO"):
    """Route INFO/WARNING to stdout and ERROR and above to stderr."""
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    stdout_handler.addFilter(_BelowErrorFilter())

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(logging.Formatter(ERROR_FORMAT, DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stdout_handler)
    root.addHandler(stderr_handler)
    root.setLevel(level.upper())
