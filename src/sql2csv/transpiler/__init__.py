"""
Dump transpiler: replays MySQL/MariaDB and PostgreSQL dumps into a staging
SQLite file.
"""

from .bulk_load import BulkLoadBatch, insert_batch, parse_copy_header, parse_copy_line
from .classifier import should_skip_statement
from .constraints import rewrite_constraint
from .parser import DumpTranspiler, ParseMode, PendingStatement, transpile
from .rules import SyntaxRule, apply_rules, convert_types, rules_for
from .staging import StagingStore, TranspileStats, create_staging_store

__all__ = [
    "BulkLoadBatch",
    "insert_batch",
    "parse_copy_header",
    "parse_copy_line",
    "should_skip_statement",
    "rewrite_constraint",
    "DumpTranspiler",
    "ParseMode",
    "PendingStatement",
    "transpile",
    "SyntaxRule",
    "apply_rules",
    "convert_types",
    "rules_for",
    "StagingStore",
    "TranspileStats",
    "create_staging_store",
]
