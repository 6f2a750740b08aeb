"""
Database engine and dump dialect identifiers.
"""

from enum import Enum
from typing import Any

from sql2csv.exceptions import UnsupportedDialectError


class DBType(str, Enum):
    """Database engines reachable through a live connection or a dump file."""

    MYSQL = "mysql"
    MARIADB = "mariadb"
    POSTGRES = "postgres"
    SQLITE = "sqlite3"

    @classmethod
    def parse(cls, value: str) -> "DBType":
        """Parse a user supplied engine name.

        Raises:
            UnsupportedDialectError: For unknown names
        """
        normalized = value.strip().lower()
        aliases = {
            "postgresql": cls.POSTGRES,
            "pg": cls.POSTGRES,
            "sqlite": cls.SQLITE,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedDialectError(value, [t.value for t in cls]) from None

    @property
    def is_mysql_family(self) -> bool:
        return self in (DBType.MYSQL, DBType.MARIADB)


# Dialects a dump file may be written in
DUMP_DIALECTS = (DBType.MYSQL, DBType.MARIADB, DBType.POSTGRES)

# SQLAlchemy dialect names -> engine type
_SQLALCHEMY_DIALECTS = {
    "mysql": DBType.MYSQL,
    "mariadb": DBType.MYSQL,
    "postgresql": DBType.POSTGRES,
    "sqlite": DBType.SQLITE,
}


def parse_dump_dialect(value: str) -> DBType:
    """Parse the source dialect of a dump file (mysql, mariadb or postgres)."""
    db_type = DBType.parse(value)
    if db_type not in DUMP_DIALECTS:
        raise UnsupportedDialectError(value, [d.value for d in DUMP_DIALECTS])
    return db_type


def dialect_of(connectable: Any) -> DBType:
    """Return the engine type of a SQLAlchemy Engine or Connection."""
    name = connectable.dialect.name
    try:
        return _SQLALCHEMY_DIALECTS[name]
    except KeyError:
        raise UnsupportedDialectError(name, _SQLALCHEMY_DIALECTS) from None
