"""
Configuration management for sql2csv.

This module provides environment-based configuration using Pydantic BaseSettings.
Every field can be overridden with an ``SQL2CSV_`` prefixed environment variable
or an entry in the ``.env`` file next to the project root.

Examples:
    SQL2CSV_EXPORT_BATCH_SIZE=5000
    SQL2CSV_MAX_WORKERS=4
    SQL2CSV_STRICT_BULK_LOAD=true
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

# Determine project root for resolving .env by default
PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
ENV_FILE_OVERRIDE = os.getenv("SQL2CSV_ENV_FILE")
if ENV_FILE_OVERRIDE:
    env_file_candidate = Path(ENV_FILE_OVERRIDE).expanduser()
    if not env_file_candidate.is_absolute():
        env_file_candidate = PROJECT_ROOT / env_file_candidate
    SETTINGS_ENV_FILE = env_file_candidate
else:
    SETTINGS_ENV_FILE = DEFAULT_ENV_FILE


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Environment variables are loaded with the SQL2CSV_ prefix, for example
    SQL2CSV_EXPORT_BATCH_SIZE overrides ``export_batch_size``. LOG_LEVEL is
    also honoured without prefix so the logging module and the settings agree.
    """

    LOG_LEVEL: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Logging level (uppercase)",
    )

    # Export pipeline
    export_batch_size: int = Field(
        default=1000,
        description="Rows fetched and written per batch by the table exporter",
    )
    max_workers: Optional[int] = Field(
        default=None,
        description="Concurrent export jobs (None = one worker per table)",
    )
    output_dir: str = Field(
        default=".", description="Default directory for exported CSV files"
    )

    # Dump transpiler
    strict_bulk_load: bool = Field(
        default=False,
        description=(
            "Roll back a whole COPY block when one of its rows has the wrong "
            "number of fields instead of skipping that row"
        ),
    )
    staging_dir: Optional[str] = Field(
        default=None,
        description="Directory for staging SQLite files (None = system temp dir)",
    )
    dump_encoding: str = Field(
        default="utf-8", description="Text encoding of dump files"
    )

    @field_validator("export_batch_size")
    @classmethod
    def _positive_batch_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"export_batch_size must be positive, got {value}")
        return value

    @field_validator("max_workers")
    @classmethod
    def _positive_workers(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError(f"max_workers must be positive, got {value}")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _uppercase_level(cls, value: str) -> str:
        return value.upper()

    model_config = SettingsConfigDict(
        env_prefix="SQL2CSV_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and reused; tests that change the environment
    call ``get_settings.cache_clear()`` first.

    Returns:
        Settings instance with loaded configuration
    """
    settings = Settings()
    logger.debug(
        "configuration.loaded",
        export_batch_size=settings.export_batch_size,
        max_workers=settings.max_workers,
        strict_bulk_load=settings.strict_bulk_load,
    )
    return settings
