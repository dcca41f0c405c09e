"""Logging setup for applications embedding taozen.

The library itself only creates module loggers; configure_logging() is
called once by the CLI (or by the host application) to attach handlers.

Usage:
    from taozen.core.logging_config import configure_logging

    configure_logging(level="DEBUG", format="json")

Environment Variables:
    TAOZEN_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    TAOZEN_LOG_FORMAT: Output format ("text" or "json")
    TAOZEN_LOG_FILE: Optional log file path
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Literal

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEXT_FORMAT_WITH_MS = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_configured = False


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line.

    {"timestamp": "...", "level": "DEBUG", "logger": "taozen.core.graph",
     "message": "[pipeline] graph_start: steps=3, batches=2", "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


def configure_logging(
    level: str | None = None,
    format: Literal["text", "json"] | None = None,
    file_path: str | None = None,
    include_ms: bool = True,
    force: bool = False,
) -> None:
    """Configure the root logger.

    Subsequent calls are ignored unless force=True.

    Args:
        level: Log level. Defaults to TAOZEN_LOG_LEVEL or "INFO".
        format: Output format. Defaults to TAOZEN_LOG_FORMAT or "text".
        file_path: Optional file path. Defaults to TAOZEN_LOG_FILE.
        include_ms: Include milliseconds in text timestamps.
        force: Reconfigure even if already configured.

    Raises:
        ValueError: If the level or format is unknown.
    """
    global _configured
    if _configured and not force:
        return

    level = (level or os.environ.get("TAOZEN_LOG_LEVEL", "INFO")).upper()
    format = format or os.environ.get("TAOZEN_LOG_FORMAT", "text")  # type: ignore[assignment]
    file_path = file_path or os.environ.get("TAOZEN_LOG_FILE")

    numeric_level = logging.getLevelName(level)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    if format not in ("text", "json"):
        raise ValueError(f"Unknown log format: {format}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        fmt = TEXT_FORMAT_WITH_MS if include_ms else TEXT_FORMAT
        formatter = logging.Formatter(fmt, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger by name (typically __name__)."""
    return logging.getLogger(name)


def set_level(level: str, logger_name: str | None = None) -> None:
    """Set the level of one logger (root when logger_name is None)."""
    logging.getLogger(logger_name).setLevel(level.upper())
