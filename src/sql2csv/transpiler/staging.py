"""
Staging store: the temporary SQLite file a dump is transpiled into.
"""

import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine

logger = structlog.get_logger(__name__)

STAGING_PREFIX = "sql_import_"
STAGING_SUFFIX = ".db"


@dataclass
class TranspileStats:
    """Counters collected while a dump is transpiled."""

    lines_read: int = 0
    statements_executed: int = 0
    statements_skipped: int = 0
    statements_failed: int = 0
    statements_discarded: int = 0
    bulk_batches: int = 0
    bulk_rows_inserted: int = 0
    bulk_rows_rejected: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class StagingStore:
    """
    Handle to a staging SQLite file.

    The caller owns the file and must call :meth:`release` (or use the store
    as a context manager) once it is done exporting from it.
    """

    def __init__(self, path: Path, stats: Optional[TranspileStats] = None):
        self.path = Path(path)
        self.stats = stats or TranspileStats()
        self._engines: List[Engine] = []

    @property
    def url(self) -> URL:
        return URL.create("sqlite", database=str(self.path))

    def create_engine(self) -> Engine:
        """Create an engine on the staging file; disposed on release."""
        engine = create_engine(self.url)
        self._engines.append(engine)
        return engine

    def release(self) -> None:
        """Dispose every engine and delete the staging file."""
        for engine in self._engines:
            engine.dispose()
        self._engines.clear()
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        logger.debug("staging.released", path=str(self.path))

    def __enter__(self) -> "StagingStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"StagingStore(path={str(self.path)!r})"


def create_staging_store(staging_dir: Optional[str] = None) -> StagingStore:
    """
    Create an empty staging file in ``staging_dir`` (system temp dir if None).

    Raises:
        OSError: If the file cannot be created
    """
    fd, path = tempfile.mkstemp(prefix=STAGING_PREFIX, suffix=STAGING_SUFFIX, dir=staging_dir)
    os.close(fd)
    logger.debug("staging.created", path=path)
    return StagingStore(Path(path))
