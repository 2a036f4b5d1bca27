"""
Logging setup for the remediation engine.

Text logs by default, JSON lines when REMEDIATION_LOG_JSON=1. Root handlers
are only installed when nothing else (uvicorn, pytest) has configured logging.
"""
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from typing import Optional

# Environment configuration, read at import like the database URL
LOG_LEVEL = os.getenv("REMEDIATION_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("REMEDIATION_LOG_JSON", "0") == "1"


class TextFormatter(logging.Formatter):
    """Human-friendly logs with UTC timestamps."""
    converter = time.gmtime

    def __init__(self):
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")


class JsonFormatter(logging.Formatter):
    """One JSON object per line. Exception text goes under "exception"."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure the root logger from arguments, falling back to the environment."""
    level_name = (level or LOG_LEVEL).upper()
    use_json = LOG_JSON if json_logs is None else json_logs

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if use_json else TextFormatter())
    root.addHandler(handler)

    # SQL echo stays off unless asked for explicitly
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
