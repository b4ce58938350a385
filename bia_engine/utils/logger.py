"""Structured JSON logging for the BIA Blog Engine."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

# Attributes passed through ``extra={...}`` that end up in the JSON entry
EXTRA_FIELDS = (
    "endpoint",
    "method",
    "status_code",
    "response_time",
    "site_id",
    "article_id",
    "error_kind",
)


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)
        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(log_dir="logs", level="INFO"):
    """Console output plus a rotating JSON file at ``<log_dir>/bia.log``."""
    os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    if root_logger.handlers:
        return root_logger

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    )

    # 10 MB per file, 5 backups
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "bia.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JSONFormatter())

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    return root_logger
