"""JSONL activity log for template application and lookups.

Each line records one event from the ``issue_templates`` logger tree. Besides
the timestamp, level, source logger and message, a line carries whichever
context fields the caller passed through ``extra=``:

    event        apply | revert | resolve | api
    template_id  template applied or reverted
    project_id   project whose scope was involved
    tracker_id   tracker of that scope (null for all-tracker lookups)
    mode         merge | replace
    method, path, status
                 HTTP request handled by the JSON API
    duration_ms  elapsed wall time

The file lives in the data directory and rotates at 5MB, keeping 3 backups.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILENAME = "issue-templates.log"
LOGGER_NAME = "issue_templates"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3

CONTEXT_FIELDS = (
    "event",
    "template_id",
    "project_id",
    "tracker_id",
    "mode",
    "method",
    "path",
    "status",
    "duration_ms",
)

_setup_lock = threading.Lock()


class ActivityFormatter(logging.Formatter):
    """Render a record as one JSON object, flattening known context fields."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        line.update({name: record.__dict__[name] for name in CONTEXT_FIELDS if name in record.__dict__})
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            line["exception"] = {"type": type(exc).__name__, "message": str(exc)}
        return json.dumps(line, default=str)


def _owned_handler(logger: logging.Logger) -> RotatingFileHandler | None:
    for h in logger.handlers:
        if isinstance(h, RotatingFileHandler) and isinstance(h.formatter, ActivityFormatter):
            return h
    return None


def setup_logging(data_dir: Path, *, level: int = logging.INFO) -> logging.Logger:
    """Route the package logger to ``<data_dir>/issue-templates.log``.

    Calling again for the same directory only updates the level. Calling for
    another directory closes the previous log file and opens the new one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    log_path = data_dir / LOG_FILENAME

    with _setup_lock:
        logger.setLevel(level)
        current = _owned_handler(logger)
        if current is not None:
            if current.baseFilename == os.path.abspath(log_path):
                return logger
            logger.removeHandler(current)
            current.close()

        handler = RotatingFileHandler(log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
        handler.setFormatter(ActivityFormatter())
        logger.addHandler(handler)
    return logger
