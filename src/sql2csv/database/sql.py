"""
SQL identifier and parameter utilities.

Provides quoting of table/column names per engine and indexed bind parameter
names, so generated statements work for identifiers containing spaces, quotes
or non-ASCII characters.
"""

import re
from typing import Dict, List, Tuple

from sql2csv.database.dialects import DBType

# One dotted component: "quoted", `quoted` or bare
_IDENTIFIER_PART = re.compile(r'"(?:[^"]|"")*"|`(?:[^`]|``)*`|[^.\s]+')


def quote_identifier(name: str, db_type: DBType = DBType.SQLITE) -> str:
    """
    Quote a SQL identifier (table or column name).

    Args:
        name: The identifier to quote
        db_type: Engine the statement is written for

    Returns:
        Properly quoted identifier

    Examples:
        >>> quote_identifier("order items")
        '"order items"'
        >>> quote_identifier("table", DBType.MYSQL)
        '`table`'
    """
    if db_type.is_mysql_family:
        escaped = name.replace("`", "``")
        return f"`{escaped}`"
    # PostgreSQL and SQLite use double quotes
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def strip_identifier(name: str) -> str:
    """
    Remove schema qualification and quoting from a dump identifier.

    Examples:
        >>> strip_identifier('public."Order"')
        'Order'
        >>> strip_identifier("`shop`.`users`")
        'users'
    """
    parts = _IDENTIFIER_PART.findall(name.strip())
    if not parts:
        return name.strip()
    last = parts[-1]
    if last.startswith('"'):
        return last[1:-1].replace('""', '"')
    if last.startswith("`"):
        return last[1:-1].replace("``", "`")
    return last


def build_indexed_params(columns: List[str]) -> Tuple[Dict[str, str], List[str]]:
    """
    Build indexed parameter names for an INSERT.

    Creates a mapping from column names to indexed parameter names (col_0,
    col_1, ...) so column names never have to be valid bind parameter names.

    Examples:
        >>> col_map, placeholders = build_indexed_params(["id", "full name"])
        >>> col_map
        {'id': 'col_0', 'full name': 'col_1'}
        >>> placeholders
        [':col_0', ':col_1']
    """
    col_param_map = {col: f"col_{i}" for i, col in enumerate(columns)}
    placeholders = [f":{col_param_map[col]}" for col in columns]
    return col_param_map, placeholders


def build_insert(table: str, columns: List[str], db_type: DBType = DBType.SQLITE) -> str:
    """
    Build a parameterized INSERT statement using indexed parameters.

    Example:
        >>> build_insert("users", ["id", "name"])
        'INSERT INTO "users" ("id", "name") VALUES (:col_0, :col_1)'
    """
    _, placeholders = build_indexed_params(columns)
    column_list = ", ".join(quote_identifier(c, db_type) for c in columns)
    return (
        f"INSERT INTO {quote_identifier(table, db_type)} ({column_list}) "
        f"VALUES ({', '.join(placeholders)})"
    )
