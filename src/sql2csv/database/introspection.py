"""
Schema introspection for MySQL, PostgreSQL and SQLite connections.

All functions are read-only metadata queries. The engine type is taken from
the connection's SQLAlchemy dialect, so the same call works against a live
database and against a transpiled staging store.
"""

from dataclasses import dataclass
from typing import List, Tuple

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection

from sql2csv.database.dialects import DBType, dialect_of
from sql2csv.database.sql import quote_identifier

logger = structlog.get_logger(__name__)

POSTGRES_TABLES_QUERY = """
    SELECT table_name FROM information_schema.tables
    WHERE table_schema = 'public'
"""

POSTGRES_COLUMNS_QUERY = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = :table_name
    ORDER BY ordinal_position
"""

SQLITE_TABLES_QUERY = """
    SELECT name FROM sqlite_master
    WHERE type='table' AND name NOT LIKE 'sqlite_%'
"""


@dataclass(frozen=True)
class TableSchema:
    """Table name and its ordered column names."""

    name: str
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class TableInfo:
    """Table name and its row count."""

    name: str
    row_count: int


def list_tables(conn: Connection) -> List[str]:
    """Return the names of all user tables reachable through ``conn``."""
    db_type = dialect_of(conn)

    if db_type.is_mysql_family:
        rows = conn.execute(text("SHOW TABLES"))
    elif db_type == DBType.POSTGRES:
        rows = conn.execute(text(POSTGRES_TABLES_QUERY))
    else:
        rows = conn.execute(text(SQLITE_TABLES_QUERY))

    tables = [str(row[0]) for row in rows]
    logger.debug("introspection.tables_listed", dialect=db_type.value, count=len(tables))
    return tables


def describe_columns(conn: Connection, table_name: str) -> List[Tuple[str, str]]:
    """
    Return ``(column_name, declared_type)`` pairs in table order.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If the table cannot be described
    """
    db_type = dialect_of(conn)

    if db_type.is_mysql_family:
        rows = conn.execute(
            text(f"SHOW COLUMNS FROM {quote_identifier(table_name, db_type)}")
        )
        # Field, Type, Null, Key, Default, Extra
        return [(str(row[0]), str(row[1])) for row in rows]

    if db_type == DBType.POSTGRES:
        rows = conn.execute(text(POSTGRES_COLUMNS_QUERY), {"table_name": table_name})
        return [(str(row[0]), str(row[1])) for row in rows]

    # cid, name, type, notnull, dflt_value, pk
    rows = conn.exec_driver_sql(
        f"PRAGMA table_info({quote_identifier(table_name, db_type)})"
    )
    return [(str(row[1]), str(row[2] or "")) for row in rows]


def list_columns(conn: Connection, table_name: str) -> List[str]:
    """Return the column names of ``table_name`` in their defined order."""
    return [name for name, _ in describe_columns(conn, table_name)]


def read_schema(conn: Connection, table_name: str) -> TableSchema:
    """Read a :class:`TableSchema` for ``table_name``."""
    return TableSchema(name=table_name, columns=tuple(list_columns(conn, table_name)))


def list_tables_with_count(conn: Connection) -> List[TableInfo]:
    """Return every table with its row count."""
    db_type = dialect_of(conn)
    infos = []
    for table in list_tables(conn):
        count = conn.execute(
            text(f"SELECT COUNT(*) FROM {quote_identifier(table, db_type)}")
        ).scalar_one()
        infos.append(TableInfo(name=table, row_count=int(count)))
    return infos
