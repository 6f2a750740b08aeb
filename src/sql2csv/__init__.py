"""
sql2csv: export relational tables, from a live database or from a MySQL /
PostgreSQL dump file, to one CSV file per table.
"""

from sql2csv.database import ConnectionConfig, DBType, connect, list_columns, list_tables
from sql2csv.exporter import TableExporter, export_table, run_exports
from sql2csv.transpiler import DumpTranspiler, StagingStore, transpile

__version__ = "0.1.0"

__all__ = [
    "ConnectionConfig",
    "DBType",
    "connect",
    "list_columns",
    "list_tables",
    "TableExporter",
    "export_table",
    "run_exports",
    "DumpTranspiler",
    "StagingStore",
    "transpile",
]
