"""
Concurrent export of many tables.

One job per table runs on a thread pool. Every job opens its own connection
from the shared engine pool, so jobs share nothing but the engine. All jobs
run to completion; a failing table never cancels its siblings.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from sql2csv.config.settings import Settings, get_settings
from sql2csv.database.introspection import list_columns
from sql2csv.exceptions import ExportError, ExportStage, UnsupportedDialectError
from sql2csv.exporter.table_exporter import TableExporter

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExportJob:
    """One table to export."""

    table: str
    columns: Tuple[str, ...]
    output_path: Path


@dataclass
class ExportResult:
    """Outcome of exporting a single table."""

    table: str
    output_path: Path
    rows_written: int = 0
    duration_seconds: float = 0.0
    error: Optional[ExportError] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class ExportReport:
    """All results of one export run."""

    results: List[ExportResult] = field(default_factory=list)
    output_dir: Optional[Path] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def errors(self) -> Dict[str, ExportError]:
        return {r.table: r.error for r in self.results if r.error is not None}

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def total_tables(self) -> int:
        return len(self.results)

    @property
    def successful_tables(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_tables(self) -> int:
        return self.total_tables - self.successful_tables

    @property
    def total_rows(self) -> int:
        return sum(r.rows_written for r in self.results)

    @property
    def duration_seconds(self) -> float:
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return sum(r.duration_seconds for r in self.results)

    def print_summary(self) -> None:
        """Print human-readable summary."""
        print("\n" + "=" * 70)
        print("CSV EXPORT REPORT")
        if self.output_dir is not None:
            print(f"Output directory: {self.output_dir}")
        print("=" * 70)

        for result in self.results:
            status = "✓" if result.success else "✗"
            print(f"\n{status} Table: {result.table} → {result.output_path}")
            if result.success:
                print(f"  Rows: {result.rows_written:,}")
                print(f"  Duration: {result.duration_seconds:.2f}s")
            else:
                print(f"  Error: {result.error}")

        print("\n" + "-" * 70)
        print("TOTALS:")
        print(f"  Tables: {self.successful_tables}/{self.total_tables}")
        print(f"  Rows: {self.total_rows:,}")
        print(f"  Duration: {self.duration_seconds:.2f}s")
        if self.success:
            print("\nAll tables exported successfully!")
        else:
            print(f"\n{self.failed_tables} of {self.total_tables} tables failed")
        print("=" * 70 + "\n")


def output_path_for(output_dir: Path, table: str) -> Path:
    return output_dir / f"{table}.csv"


def _export_one(engine: Engine, table: str, output_path: Path, batch_size: int) -> ExportResult:
    """Run one job; errors are returned in the result, never raised."""
    start = time.time()
    result = ExportResult(table=table, output_path=output_path)
    try:
        with engine.connect() as conn:
            try:
                columns = list_columns(conn, table)
            except (SQLAlchemyError, UnsupportedDialectError) as e:
                raise ExportError(table, ExportStage.RESOLVE_COLUMNS, e, str(output_path)) from e
            if not columns:
                raise ExportError(
                    table,
                    ExportStage.RESOLVE_COLUMNS,
                    LookupError(f"table {table} does not exist or has no columns"),
                    str(output_path),
                )

            job = ExportJob(table=table, columns=tuple(columns), output_path=output_path)
            result.rows_written = TableExporter(
                conn, job.table, job.columns, job.output_path, batch_size
            ).export()
    except ExportError as e:
        result.error = e
    except SQLAlchemyError as e:
        result.error = ExportError(table, ExportStage.QUERY, e, str(output_path))

    result.duration_seconds = time.time() - start
    if result.error is not None:
        logger.error("exporter.table_failed", **result.error.to_dict())
    return result


def run_exports(
    engine: Engine,
    tables: Iterable[str],
    output_dir: Union[str, Path],
    settings: Optional[Settings] = None,
) -> ExportReport:
    """
    Export every table in ``tables`` to ``<output_dir>/<table>.csv``.

    Jobs run concurrently on a thread pool sized by ``settings.max_workers``
    (one worker per table when unset). Results are read only after every job
    finished.

    Args:
        engine: Engine the jobs take their connections from
        tables: Table names; duplicates are exported once
        output_dir: Directory for the CSV files, created when missing
        settings: Settings to use instead of :func:`get_settings`

    Returns:
        ExportReport with one result per distinct table, in request order
    """
    settings = settings or get_settings()
    unique_tables = list(dict.fromkeys(tables))
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = ExportReport(output_dir=output_dir, start_time=datetime.now())
    if not unique_tables:
        report.end_time = datetime.now()
        return report

    max_workers = settings.max_workers or len(unique_tables)
    logger.info(
        "exporter.started",
        tables=len(unique_tables),
        max_workers=max_workers,
        output_dir=str(output_dir),
    )

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sql2csv-export") as executor:
        futures = {
            table: executor.submit(
                _export_one,
                engine,
                table,
                output_path_for(output_dir, table),
                settings.export_batch_size,
            )
            for table in unique_tables
        }
    # Leaving the executor joins every job

    for table, future in futures.items():
        try:
            report.results.append(future.result())
        except Exception as e:
            logger.exception("exporter.job_crashed", table=table)
            output_path = output_path_for(output_dir, table)
            report.results.append(
                ExportResult(
                    table=table,
                    output_path=output_path,
                    error=ExportError(table, ExportStage.UNEXPECTED, e, str(output_path)),
                )
            )

    report.end_time = datetime.now()
    logger.info(
        "exporter.completed",
        tables=report.total_tables,
        failed=report.failed_tables,
        rows=report.total_rows,
    )
    return report
