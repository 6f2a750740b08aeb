"""
Statement skip classifier.

Dumps carry session settings, ownership and permission statements, and other
objects SQLite has no use for. Those statements are recognized by
case-sensitive patterns and never executed.
"""

import re
from typing import Tuple

SKIP_PATTERNS: Tuple[re.Pattern, ...] = tuple(
    re.compile(p)
    for p in (
        r"^SET ",
        r"^ALTER DATABASE",
        r"^CREATE DATABASE",
        r"^CREATE SCHEMA",
        r"^CREATE EXTENSION",
        r"^COMMENT ON",
        r"^GRANT ",
        r"^REVOKE ",
        r"CREATE TRIGGER",
        r"CREATE RULE",
        r"CREATE POLICY",
        r"SELECT pg_catalog",
        r"ALTER TABLE.*OWNER TO",
        r"ALTER TABLE.*ADD GENERATED",
        # MySQL session noise
        r"^LOCK TABLES",
        r"^UNLOCK TABLES",
        r"^USE ",
        r"^DELIMITER",
        # Transaction control; the transpiler manages its own transactions
        r"^START TRANSACTION",
        r"^BEGIN(?: TRANSACTION| WORK)?\s*;",
        r"^COMMIT(?: WORK)?\s*;",
        r"^ROLLBACK(?: WORK)?\s*;",
        r"ALTER TABLE.*ALTER COLUMN",
    )
)


def should_skip_statement(statement: str) -> bool:
    """
    Return True when ``statement`` must not be executed on the staging store.

    Examples:
        >>> should_skip_statement("SET client_encoding = 'UTF8';")
        True
        >>> should_skip_statement("INSERT INTO t VALUES (1);")
        False
    """
    stmt = statement.strip()
    return any(pattern.search(stmt) for pattern in SKIP_PATTERNS)
