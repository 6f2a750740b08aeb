"""Structured logging framework using structlog.

This module provides centralized logging configuration with:
- ISO-8601 timestamps
- JSON rendering for structured logs
- Automatic sanitization of sensitive fields (passwords, credential URLs)
- Dual output (stderr + optional file logging)

Configuration:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL. Default: INFO
- SQL2CSV_LOG_TO_FILE: Enable file logging (1, true, yes). Default: disabled
- SQL2CSV_LOG_FILE_DIR: Directory for log files. Default: logs/

Usage:
    >>> from sql2csv.utils.logging import configure_logging, get_logger
    >>> configure_logging()
    >>> logger = get_logger(__name__)
    >>> logger.info("export.started", tables=3)
"""

import logging
import os
import re
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import structlog
from pydantic import ValidationError
from structlog.types import EventDict, Processor

from sql2csv.config import get_settings

# Sensitive key patterns for sanitization
SENSITIVE_PATTERNS = [
    re.compile(r".*password.*", re.IGNORECASE),
    re.compile(r".*token.*", re.IGNORECASE),
    re.compile(r".*secret.*", re.IGNORECASE),
    re.compile(r"^DATABASE_URL$", re.IGNORECASE),
]

# user:password@ segment of a connection URL
CREDENTIALS_IN_URL = re.compile(r"(?P<scheme>[\w+.-]+://)(?P<user>[^:/@\s]+):[^@\s]*@")

REDACTED_VALUE = "[REDACTED]"


def redact_url(value: str) -> str:
    """Mask the password of any connection URL found in ``value``.

    Example:
        >>> redact_url("mysql+pymysql://root:hunter2@db:3306/shop")
        'mysql+pymysql://root:[REDACTED]@db:3306/shop'
    """
    return CREDENTIALS_IN_URL.sub(
        lambda m: f"{m.group('scheme')}{m.group('user')}:{REDACTED_VALUE}@", value
    )


def sanitize_for_logging(data: Dict[str, Any]) -> Dict[str, Any]:
    """Redact sensitive values from a dictionary before logging.

    Keys matching password, token, secret or DATABASE_URL are replaced with
    [REDACTED]; string values that embed URL credentials are masked.

    Args:
        data: Dictionary that may contain sensitive data

    Returns:
        New dictionary with sensitive values replaced
    """
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        if any(pattern.match(key) for pattern in SENSITIVE_PATTERNS):
            sanitized[key] = REDACTED_VALUE
        elif isinstance(value, dict):
            sanitized[key] = sanitize_for_logging(value)
        elif isinstance(value, str) and "://" in value:
            sanitized[key] = redact_url(value)
        else:
            sanitized[key] = value
    return sanitized


def sanitization_processor(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> MutableMapping[str, Any]:
    """Structlog processor that sanitizes sensitive fields in event_dict."""
    return sanitize_for_logging(dict(event_dict))


def _get_log_level(level_name: Optional[str] = None) -> int:
    """Resolve a level name, falling back to settings and then the environment."""
    if level_name is None:
        try:
            level_name = get_settings().LOG_LEVEL
        except ValidationError:
            # Invalid settings must not prevent logging from coming up
            level_name = os.getenv("LOG_LEVEL", "INFO")
    return getattr(logging, level_name.upper(), logging.INFO)


def _should_log_to_file() -> bool:
    """Check if file logging is enabled via environment."""
    log_to_file = os.getenv("SQL2CSV_LOG_TO_FILE", "").lower()
    return log_to_file in ("1", "true", "yes")


def _get_log_file_path() -> Path:
    """Get the log file path with date-based naming."""
    log_dir = Path(os.getenv("SQL2CSV_LOG_FILE_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    # Format: sql2csv-YYYYMMDD.log
    date_str = datetime.now().strftime("%Y%m%d")
    return log_dir / f"sql2csv-{date_str}.log"


def configure_logging(level_name: Optional[str] = None) -> None:
    """Configure structlog with JSON rendering and sanitization.

    Safe to call more than once; handlers installed by a previous call are
    replaced.

    Args:
        level_name: Explicit level (e.g. "DEBUG"); defaults to LOG_LEVEL
    """
    level = _get_log_level(level_name)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_sql2csv_handler", False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler._sql2csv_handler = True  # type: ignore[attr-defined]
    root.addHandler(stream_handler)

    if _should_log_to_file():
        file_handler = TimedRotatingFileHandler(
            filename=str(_get_log_file_path()),
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler._sql2csv_handler = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        sanitization_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Get a structlog BoundLogger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> Any:
    """Create a logger with bound context fields.

    Example:
        >>> logger = bind_context(table="orders", output="out/orders.csv")
        >>> logger.info("exporter.batch_written", rows=1000)
    """
    return structlog.get_logger().bind(**kwargs)
