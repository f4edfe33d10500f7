"""
Logging setup.

Two output formats:

    text    2026-01-01 12:00:00 [INFO] chatserver.transcript: alice: hi
    json    {"time": "...", "level": "INFO", "logger": "chatserver.transcript", "message": "alice: hi"}

JSON is for log aggregators; text is for reading in a terminal.
"""

import json
import logging
from datetime import datetime, timezone


TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(level: str = "INFO", fmt: str = "text"):
    """Configure the root logger and the chatserver logger."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT))

    logging.basicConfig(level=numeric_level, handlers=[handler])

    logging.getLogger("chatserver").setLevel(numeric_level)
