"""
Single table export to CSV.

Rows are fetched in batches of ``batch_size`` from a streamed result and
written with ``csv.writer.writerows``, so memory stays bounded by one batch
whatever the table size.
"""

import csv
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, List, Sequence, Union

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from sql2csv.database.dialects import dialect_of
from sql2csv.database.sql import quote_identifier
from sql2csv.exceptions import ExportError, ExportStage, UnsupportedDialectError

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 1000

Connectable = Union[Engine, Connection]


def format_value(value: Any) -> str:
    """
    Convert one database value to its CSV field text.

    Examples:
        >>> format_value(None)
        ''
        >>> format_value(b"caf\\xc3\\xa9")
        'café'
        >>> format_value(3.5)
        '3.5'
    """
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class TableExporter:
    """Export one table to one CSV file."""

    def __init__(
        self,
        connectable: Connectable,
        table_name: str,
        columns: Sequence[str],
        output_path: Union[str, Path],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.connectable = connectable
        self.table_name = table_name
        self.columns = list(columns)
        self.output_path = Path(output_path)
        self.batch_size = batch_size

    @contextmanager
    def _connection(self) -> Generator[Connection, None, None]:
        if isinstance(self.connectable, Engine):
            with self.connectable.connect() as conn:
                yield conn
        else:
            yield self.connectable

    def _error(self, stage: ExportStage, error: Exception) -> ExportError:
        return ExportError(self.table_name, stage, error, str(self.output_path))

    def build_query(self, conn: Connection) -> str:
        db_type = dialect_of(conn)
        column_list = ", ".join(quote_identifier(c, db_type) for c in self.columns)
        return f"SELECT {column_list} FROM {quote_identifier(self.table_name, db_type)}"

    def export(self) -> int:
        """
        Write the header and every row of the table.

        Returns:
            Number of data rows written

        Raises:
            ExportError: If the output cannot be opened or the query, scan or
                write fails; a partially written file is left in place
        """
        if not self.columns:
            raise self._error(
                ExportStage.RESOLVE_COLUMNS,
                ValueError(f"no columns to export for table {self.table_name}"),
            )

        start = time.time()
        try:
            output = open(self.output_path, "w", newline="", encoding="utf-8")
        except OSError as e:
            raise self._error(ExportStage.OPEN_OUTPUT, e) from e

        rows_written = 0
        with output, self._connection() as conn:
            writer = csv.writer(output, lineterminator="\n")
            try:
                writer.writerow(self.columns)
            except (OSError, csv.Error) as e:
                raise self._error(ExportStage.WRITE, e) from e

            try:
                result = conn.execute(
                    text(self.build_query(conn)),
                    execution_options={"stream_results": True},
                )
            except (SQLAlchemyError, UnsupportedDialectError) as e:
                raise self._error(ExportStage.QUERY, e) from e

            with result:
                while True:
                    try:
                        rows = result.fetchmany(self.batch_size)
                    except SQLAlchemyError as e:
                        raise self._error(ExportStage.QUERY, e) from e
                    if not rows:
                        break

                    batch: List[List[str]] = [[format_value(v) for v in row] for row in rows]
                    try:
                        writer.writerows(batch)
                    except (OSError, csv.Error) as e:
                        raise self._error(ExportStage.WRITE, e) from e
                    rows_written += len(batch)

        logger.info(
            "exporter.table_exported",
            table=self.table_name,
            output_path=str(self.output_path),
            rows=rows_written,
            duration_seconds=round(time.time() - start, 3),
        )
        return rows_written


def export_table(
    connectable: Connectable,
    table_name: str,
    columns: Sequence[str],
    output_path: Union[str, Path],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Export ``table_name`` to ``output_path``; returns the rows written."""
    return TableExporter(connectable, table_name, columns, output_path, batch_size).export()
