# sticker_studio/logging_config.py
"""
JSON logging to stderr.

The MCP server speaks over stdout, so nothing may log there. The CLI uses
the same setup at `quiet` so logs stay out of the live display.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

VERBOSITY_LEVELS = {
    "quiet": logging.WARNING,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}

# Library loggers and the lowest level they may emit at
_LIBRARY_FLOORS = {
    "fastmcp": logging.DEBUG,
    "google_genai": logging.INFO,
    "httpx": logging.WARNING,  # one INFO line per request otherwise
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg and exc when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        # Captions are often non-ASCII
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(verbosity: str = "normal") -> None:
    """
    Send all logging to stderr as JSON at the given verbosity.

    Call before importing modules that log at import time. Safe to call again
    once the config is loaded; existing handlers are replaced.

    Args:
        verbosity: quiet, normal or verbose (unknown values mean normal)
    """
    level = VERBOSITY_LEVELS.get(verbosity, logging.INFO)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name, floor in _LIBRARY_FLOORS.items():
        library_logger = logging.getLogger(name)
        library_logger.handlers[:] = [handler]
        library_logger.setLevel(max(level, floor))
        library_logger.propagate = False
