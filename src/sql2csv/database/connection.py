"""
Connection configuration and engine creation for live databases.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from sql2csv.database.dialects import DBType
from sql2csv.exceptions import Sql2CsvError

logger = structlog.get_logger(__name__)

DEFAULT_PORTS = {
    DBType.MYSQL: 3306,
    DBType.MARIADB: 3306,
    DBType.POSTGRES: 5432,
}


class ConnectionFailedError(Sql2CsvError):
    """The database could not be reached with the given configuration."""


@dataclass
class ConnectionConfig:
    """Configuration for one database connection."""

    type: DBType
    host: str = "localhost"
    port: Optional[int] = None
    user: str = ""
    password: str = ""
    dbname: str = ""
    file_path: str = ""  # SQLite only
    connection_url: Optional[str] = None  # used as-is when provided

    def get_url(self) -> URL:
        """Get the SQLAlchemy URL for this configuration."""
        if self.connection_url:
            url = self.connection_url
            # Normalize postgres scheme for SQLAlchemy
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            return make_url(url)

        if self.type == DBType.SQLITE:
            return URL.create("sqlite", database=self.file_path)

        drivername = "postgresql" if self.type == DBType.POSTGRES else "mysql+pymysql"
        return URL.create(
            drivername,
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=self.port or DEFAULT_PORTS[self.type],
            database=self.dbname or None,
        )


def connect(config: ConnectionConfig) -> Engine:
    """
    Create an engine for the configuration and verify it with a ping.

    Raises:
        ConnectionFailedError: If the database cannot be reached
    """
    url = config.get_url()
    engine = create_engine(url, pool_pre_ping=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        engine.dispose()
        logger.error(
            "connection.failed",
            url=url.render_as_string(hide_password=True),
            error=str(e),
        )
        raise ConnectionFailedError(f"error connecting to database: {e}") from e

    logger.info("connection.established", url=url.render_as_string(hide_password=True))
    return engine
