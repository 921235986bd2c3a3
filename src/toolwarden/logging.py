"""
Toolwarden Structured Logging

Provides a configured logger for the toolwarden package using stdlib logging
with structured context. No external dependencies required.

Usage:
    from toolwarden.logging import get_logger

    logger = get_logger("toolwarden.engine")
    logger.info("Tool executed", extra={"call_id": "c-1", "tool_name": "read_file"})

For machine consumption, configure with JSON output:
    from toolwarden.logging import configure_logging
    configure_logging(json_output=True, level="INFO")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

# Structured fields lifted from ``extra={...}`` onto every formatted line.
STRUCTURED_FIELDS = (
    "session_id",
    "call_id",
    "tool_name",
    "risk_class",
    "policy",
    "iteration",
    "event_type",
    "outcome",
    "duration_ms",
)


class ToolwardenFormatter(logging.Formatter):
    """Structured log formatter.

    Outputs either human-readable or JSON format depending on configuration.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._json_output:
            return json.dumps(log_data, default=str)

        extra_keys = {
            k: v
            for k, v in log_data.items()
            if k not in ("timestamp", "level", "logger", "message", "exception")
        }
        extra_str = ""
        if extra_keys:
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in extra_keys.items())

        line = f"[{log_data['timestamp']}] {record.levelname:8s} {record.name}: {record.getMessage()}{extra_str}"
        if "exception" in log_data:
            line += "\n" + log_data["exception"]
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """Configure toolwarden logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON lines.
    """
    root_logger = logging.getLogger("toolwarden")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    # stderr keeps stdout free for the final answer
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ToolwardenFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    root_logger.propagate = False


def get_logger(name: str = "toolwarden") -> logging.Logger:
    """Get a toolwarden logger instance.

    Args:
        name: Logger name (usually the module path, e.g. "toolwarden.tools.engine").

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


# Auto-configure with sensible defaults on import
configure_logging(level="WARNING")
