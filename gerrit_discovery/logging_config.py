"""
Structured logging configuration.

Provides JSON-formatted logging for log aggregation, a colored console
formatter, and a per-scan logger adapter that tags every record with the
scan identity.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, MutableMapping

# Record attributes copied into structured output when present
CONTEXT_FIELDS = (
    "navigator_id",
    "project",
    "page",
    "api_endpoint",
    "status_code",
    "duration_ms",
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Produces one JSON object per line, suitable for ELK, Splunk or CloudWatch.
    """

    def __init__(self, extra_fields: dict[str, Any] | None = None):
        super().__init__()
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        log_data.update(self.extra_fields)

        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Colored single-line formatter for console output."""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        levelname = record.levelname
        if self.use_colors:
            color = self.COLORS.get(levelname, self.COLORS["RESET"])
            levelname = f"{color}{levelname:8}{self.COLORS['RESET']}"
        else:
            levelname = f"{levelname:8}"

        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S")
        message = record.getMessage()

        extra_info = []
        if hasattr(record, "page"):
            extra_info.append(f"page={record.page}")
        if hasattr(record, "duration_ms"):
            extra_info.append(f"duration={record.duration_ms:.0f}ms")
        if hasattr(record, "status_code"):
            extra_info.append(f"status={record.status_code}")

        if extra_info:
            message = f"{message} [{', '.join(extra_info)}]"

        exc_text = ""
        if record.exc_info:
            exc_text = "\n" + "".join(traceback.format_exception(*record.exc_info))

        return f"{timestamp} {levelname} {record.name}: {message}{exc_text}"


def setup_structured_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    log_file: str | None = None,
) -> logging.Logger:
    """
    Setup logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, use JSON formatter; otherwise human-readable
        log_file: Optional file path for log output

    Returns:
        Configured logger for the gerrit_discovery package
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter(
            extra_fields={"service": "gerrit-discovery"}
        )
    else:
        formatter = HumanReadableFormatter(use_colors=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger("gerrit_discovery")
    logger.setLevel(level)
    logger.debug(f"Logging configured (json={json_format}, file={log_file})")

    return logger


class ScanLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter tagging records with the identity of one scan.

    Extra fields given at the call site are kept alongside the scan's own.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def scan_logger(base: logging.Logger | logging.LoggerAdapter, navigator_id: str) -> ScanLoggerAdapter:
    """Wrap a diagnostics sink so every record carries the navigator id."""
    return ScanLoggerAdapter(base, {"navigator_id": navigator_id})


def log_api_call(
    logger: logging.Logger | logging.LoggerAdapter,
    method: str,
    url: str,
    status_code: int,
    duration_ms: float,
) -> None:
    """
    Log an API call with structured information.

    Args:
        logger: Logger instance
        method: HTTP method
        url: Requested URL
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
    """
    extra = {
        "api_endpoint": url,
        "status_code": status_code,
        "duration_ms": duration_ms,
    }

    level = logging.DEBUG
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING

    logger.log(
        level,
        f"{method} {url} -> {status_code} ({duration_ms:.0f}ms)",
        extra=extra,
    )
