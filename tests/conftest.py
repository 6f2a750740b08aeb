"""Shared pytest fixtures: settings isolation, logging, dump files and SQLite engines."""

import json
import logging
import textwrap
from pathlib import Path
from typing import Callable, Dict, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from sql2csv.config import Settings, get_settings
from sql2csv.utils.logging import configure_logging


@pytest.fixture(scope="session", autouse=True)
def _structured_logging() -> None:
    configure_logging("DEBUG")


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Every test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with the staging store kept under the test's tmp_path."""
    staging_dir = tmp_path / "staging"
    staging_dir.mkdir()
    return Settings(staging_dir=str(staging_dir))


@pytest.fixture
def write_dump(tmp_path: Path) -> Callable[..., Path]:
    """Write dedented dump text to a file and return its path."""

    def _write(content: str, name: str = "dump.sql") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sqlite_engine(tmp_path: Path):
    """Factory for file-based SQLite engines, disposed after the test."""
    engines: List[Engine] = []

    def _create(name: str = "source.db") -> Engine:
        engine = create_engine(f"sqlite:///{tmp_path / name}")
        engines.append(engine)
        return engine

    yield _create

    for engine in engines:
        engine.dispose()


def log_events(caplog: pytest.LogCaptureFixture) -> List[Dict]:
    """Parse the JSON-rendered structlog records captured by caplog."""
    events = []
    for record in caplog.records:
        try:
            events.append(json.loads(record.getMessage()))
        except ValueError:
            continue
    return events


@pytest.fixture
def events(caplog: pytest.LogCaptureFixture) -> Callable[[], List[Dict]]:
    caplog.set_level(logging.DEBUG)
    return lambda: log_events(caplog)
