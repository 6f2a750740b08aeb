"""
Database access: engine types, connections, identifier quoting and schema
introspection.
"""

from .connection import ConnectionConfig, ConnectionFailedError, connect
from .dialects import DBType, dialect_of, parse_dump_dialect
from .introspection import (
    TableInfo,
    TableSchema,
    describe_columns,
    list_columns,
    list_tables,
    list_tables_with_count,
    read_schema,
)
from .sql import build_indexed_params, build_insert, quote_identifier, strip_identifier

__all__ = [
    "ConnectionConfig",
    "ConnectionFailedError",
    "connect",
    "DBType",
    "dialect_of",
    "parse_dump_dialect",
    "TableInfo",
    "TableSchema",
    "describe_columns",
    "list_columns",
    "list_tables",
    "list_tables_with_count",
    "read_schema",
    "build_indexed_params",
    "build_insert",
    "quote_identifier",
    "strip_identifier",
]
