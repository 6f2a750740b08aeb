"""
Constraint rewriter.

SQLite cannot add constraints to an existing table, so ``ALTER TABLE ... ADD
CONSTRAINT`` statements are turned into equivalent indexes:

- PRIMARY KEY  -> ``CREATE UNIQUE INDEX IF NOT EXISTS pk_<table>``
- FOREIGN KEY  -> ``CREATE INDEX IF NOT EXISTS fk_<table>_<referenced>``
- UNIQUE       -> ``CREATE UNIQUE INDEX IF NOT EXISTS <constraint name>``

Anything else (CHECK, EXCLUDE, ...) is dropped.
"""

import re

from sql2csv.database.sql import quote_identifier, strip_identifier

_IDENT = r"(?:\"[^\"]*\"|`[^`]*`|[^\s\"`(),;])+"

_TABLE = re.compile(
    rf"ALTER\s+TABLE\s+(?:ONLY\s+)?(?:IF\s+EXISTS\s+)?(?P<table>{_IDENT})",
    re.IGNORECASE,
)
_PRIMARY_KEY = re.compile(
    rf"ADD\s+CONSTRAINT\s+{_IDENT}\s+PRIMARY\s+KEY\s*\((?P<cols>[^)]*)\)",
    re.IGNORECASE,
)
_FOREIGN_KEY = re.compile(
    rf"FOREIGN\s+KEY\s*\((?P<cols>[^)]*)\)\s*REFERENCES\s+(?P<ref>{_IDENT})\s*\(",
    re.IGNORECASE,
)
_UNIQUE = re.compile(
    rf"ADD\s+CONSTRAINT\s+(?P<name>{_IDENT})\s+UNIQUE\s*(?:KEY\s+|INDEX\s+)?\((?P<cols>[^)]*)\)",
    re.IGNORECASE,
)
_PLAIN_NAME = re.compile(r"[A-Za-z_]\w*")


def _name(identifier: str) -> str:
    if _PLAIN_NAME.fullmatch(identifier):
        return identifier
    return quote_identifier(identifier)


def _columns(raw: str) -> str:
    return ", ".join(part.strip() for part in raw.split(","))


def rewrite_constraint(statement: str) -> str:
    """
    Rewrite an ``ADD CONSTRAINT`` statement into a SQLite index statement.

    Returns an empty string for constraints that have no index equivalent or
    statements that cannot be understood.

    Example:
        >>> rewrite_constraint(
        ...     "ALTER TABLE ONLY public.orders ADD CONSTRAINT orders_pkey PRIMARY KEY (id);"
        ... )
        'CREATE UNIQUE INDEX IF NOT EXISTS pk_orders ON orders (id);'
    """
    table_match = _TABLE.search(statement)
    if table_match is None:
        return ""
    table = strip_identifier(table_match.group("table"))

    pk = _PRIMARY_KEY.search(statement)
    if pk:
        return (
            f"CREATE UNIQUE INDEX IF NOT EXISTS {_name('pk_' + table)} "
            f"ON {_name(table)} ({_columns(pk.group('cols'))});"
        )

    fk = _FOREIGN_KEY.search(statement)
    if fk:
        ref = strip_identifier(fk.group("ref"))
        return (
            f"CREATE INDEX IF NOT EXISTS {_name(f'fk_{table}_{ref}')} "
            f"ON {_name(table)} ({_columns(fk.group('cols'))});"
        )

    unique = _UNIQUE.search(statement)
    if unique:
        name = strip_identifier(unique.group("name"))
        return (
            f"CREATE UNIQUE INDEX IF NOT EXISTS {_name(name)} "
            f"ON {_name(table)} ({_columns(unique.group('cols'))});"
        )

    return ""
