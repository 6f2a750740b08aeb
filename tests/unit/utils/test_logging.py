"""Unit tests for structured logging: JSON output and sanitization."""

import json
import logging
import sys

import pytest

from sql2csv.utils.logging import (
    bind_context,
    configure_logging,
    get_logger,
    redact_url,
    sanitize_for_logging,
)

pytestmark = pytest.mark.unit


def test_logger_renders_json_with_name_and_level(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    get_logger("sql2csv.test").info("exporter.table_exported", table="users", rows=3)

    log_data = json.loads(caplog.records[-1].getMessage())
    assert log_data["event"] == "exporter.table_exported"
    assert log_data["logger"] == "sql2csv.test"
    assert log_data["level"] == "info"
    assert log_data["rows"] == 3
    assert "timestamp" in log_data


def test_bind_context_fields_are_emitted(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    bind_context(table="orders").info("exporter.started")

    log_data = json.loads(caplog.records[-1].getMessage())
    assert log_data["table"] == "orders"


def test_sensitive_keys_redacted() -> None:
    sanitized = sanitize_for_logging(
        {"password": "hunter2", "api_token": "abc", "client_secret": "s", "user": "root"}
    )
    assert sanitized["password"] == "[REDACTED]"
    assert sanitized["api_token"] == "[REDACTED]"
    assert sanitized["client_secret"] == "[REDACTED]"
    assert sanitized["user"] == "root"


def test_nested_values_sanitized() -> None:
    sanitized = sanitize_for_logging({"config": {"password": "x", "host": "db"}})
    assert sanitized["config"] == {"password": "[REDACTED]", "host": "db"}


def test_url_credentials_masked() -> None:
    assert redact_url("mysql+pymysql://root:hunter2@db:3306/shop") == (
        "mysql+pymysql://root:[REDACTED]@db:3306/shop"
    )
    assert redact_url("sqlite:////tmp/x.db") == "sqlite:////tmp/x.db"


def test_url_in_event_is_masked(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    get_logger("sql2csv.test").info("connection.established", url="postgresql://app:pw@h/db")

    log_data = json.loads(caplog.records[-1].getMessage())
    assert log_data["url"] == "postgresql://app:[REDACTED]@h/db"


def test_logs_go_to_stderr() -> None:
    configure_logging("DEBUG")

    handlers = [h for h in logging.getLogger().handlers if getattr(h, "_sql2csv_handler", False)]
    assert len(handlers) == 1
    assert handlers[0].stream is sys.stderr
