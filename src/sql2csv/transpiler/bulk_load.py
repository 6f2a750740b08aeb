"""
PostgreSQL ``COPY ... FROM stdin`` support.

A dump carries bulk data as a ``COPY`` header, tab-separated text rows and a
``\\.`` terminator. Rows are decoded from COPY text format and inserted into
the staging store, one transaction per block.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from sql2csv.database.introspection import describe_columns
from sql2csv.database.sql import build_indexed_params, build_insert, strip_identifier
from sql2csv.exceptions import BulkLoadRowMismatch

logger = structlog.get_logger(__name__)

END_OF_DATA = "\\."
NULL_MARKER = "\\N"

_COPY_HEADER = re.compile(
    r"^COPY\s+(?P<table>(?:\"[^\"]*\"|[^\s\"(])+)\s*"
    r"(?:\((?P<columns>[^)]*)\))?\s+FROM\s+stdin\b",
    re.IGNORECASE,
)

_ESCAPE = re.compile(r"\\(x[0-9A-Fa-f]{1,2}|[0-7]{1,3}|.)")

_SIMPLE_ESCAPES = {
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}


@dataclass
class BulkLoadBatch:
    """One COPY block: target table, optional column list and raw data lines."""

    table: str
    columns: Optional[Tuple[str, ...]] = None
    lines: List[str] = field(default_factory=list)
    start_line: int = 0

    def add(self, raw_line: str) -> None:
        self.lines.append(raw_line)


@dataclass
class BulkLoadOutcome:
    """Row counts of one applied batch."""

    inserted: int = 0
    rejected: int = 0


def parse_copy_header(line: str, line_number: int = 0) -> Optional[BulkLoadBatch]:
    """
    Recognize a ``COPY <table> [(cols)] FROM stdin;`` header.

    Returns:
        A new empty batch, or None when ``line`` is not a stdin COPY header

    Example:
        >>> batch = parse_copy_header('COPY public.users (id, "name") FROM stdin;')
        >>> batch.table, batch.columns
        ('users', ('id', 'name'))
    """
    match = _COPY_HEADER.match(line.strip())
    if match is None:
        return None

    columns = None
    if match.group("columns"):
        columns = tuple(
            strip_identifier(col) for col in match.group("columns").split(",") if col.strip()
        )

    return BulkLoadBatch(
        table=strip_identifier(match.group("table")),
        columns=columns,
        start_line=line_number,
    )


def _replace_escape(match: re.Match) -> str:
    token = match.group(1)
    if token[0] == "x" and len(token) > 1:
        return chr(int(token[1:], 16))
    if token[0] in "01234567":
        return chr(int(token, 8))
    return _SIMPLE_ESCAPES.get(token, token)


def decode_copy_field(raw: str) -> Optional[str]:
    """
    Decode one COPY text-format field.

    ``\\N`` is NULL; backslash sequences are unescaped.
    """
    if raw == NULL_MARKER:
        return None
    if "\\" not in raw:
        return raw
    return _ESCAPE.sub(_replace_escape, raw)


def parse_copy_line(line: str) -> List[Optional[str]]:
    """
    Split a COPY data line on tabs and decode each field.

    Example:
        >>> parse_copy_line("1\\tAda\\t\\\\N")
        ['1', 'Ada', None]
    """
    return [decode_copy_field(raw) for raw in line.split("\t")]


def coerce_booleans(values: Sequence[Optional[str]], boolean_columns: Sequence[bool]) -> list:
    """Map ``t``/``f`` to True/False in the positions flagged as BOOLEAN."""
    coerced = []
    for value, is_boolean in zip(values, boolean_columns):
        if is_boolean and value == "t":
            coerced.append(True)
        elif is_boolean and value == "f":
            coerced.append(False)
        else:
            coerced.append(value)
    return coerced


def insert_batch(conn: Connection, batch: BulkLoadBatch, strict: bool = False) -> BulkLoadOutcome:
    """
    Insert every row of ``batch`` inside a single transaction.

    Rows whose field count differs from the column count are skipped, and rows
    the database rejects are logged and skipped; the rest of the batch still
    commits. With ``strict`` a field-count mismatch rolls back the batch.

    Raises:
        BulkLoadRowMismatch: In strict mode, on the first malformed row
        sqlalchemy.exc.SQLAlchemyError: If the transaction itself fails
    """
    outcome = BulkLoadOutcome()
    if not batch.lines:
        return outcome

    with conn.begin():
        described = describe_columns(conn, batch.table)
        if not described:
            logger.warning(
                "transpiler.bulk_load_unknown_table",
                table=batch.table,
                rows=len(batch.lines),
            )
            outcome.rejected = len(batch.lines)
            return outcome

        declared = {name: col_type for name, col_type in described}
        columns = list(batch.columns) if batch.columns else [name for name, _ in described]
        boolean_columns = [declared.get(col, "").upper() == "BOOLEAN" for col in columns]
        col_param_map, _ = build_indexed_params(columns)
        statement = text(build_insert(batch.table, columns))

        for offset, raw_line in enumerate(batch.lines, start=1):
            values = parse_copy_line(raw_line)
            if len(values) != len(columns):
                if strict:
                    raise BulkLoadRowMismatch(
                        batch.table, batch.start_line + offset, len(columns), len(values)
                    )
                logger.debug(
                    "transpiler.bulk_row_mismatch",
                    table=batch.table,
                    line_number=batch.start_line + offset,
                    expected=len(columns),
                    actual=len(values),
                )
                outcome.rejected += 1
                continue

            params = {
                col_param_map[col]: value
                for col, value in zip(columns, coerce_booleans(values, boolean_columns))
            }
            try:
                conn.execute(statement, params)
                outcome.inserted += 1
            except SQLAlchemyError as e:
                logger.warning(
                    "transpiler.bulk_row_failed",
                    table=batch.table,
                    line_number=batch.start_line + offset,
                    error=str(e.orig if getattr(e, "orig", None) else e),
                )
                outcome.rejected += 1

    logger.debug(
        "transpiler.bulk_load_applied",
        table=batch.table,
        inserted=outcome.inserted,
        rejected=outcome.rejected,
    )
    return outcome
