"""Exceptions raised by the transpiler, the introspector and the exporter.

Fatal errors carry a stage marker and the underlying cause so callers can log
them as structured events.
"""

from enum import Enum
from typing import Dict, Iterable, Optional


class Sql2CsvError(Exception):
    """Base class for all sql2csv errors."""


class UnsupportedDialectError(Sql2CsvError):
    """Requested source dialect or database engine is not supported."""

    def __init__(self, dialect: str, supported: Iterable[str]):
        self.dialect = dialect
        self.supported = sorted(supported)
        super().__init__(
            f"Unsupported database type '{dialect}'. "
            f"Supported: {', '.join(self.supported)}"
        )


class TranspileStage(str, Enum):
    """Stages of the dump transpiler that can fail fatally."""

    OPEN_SOURCE = "open_source"
    CREATE_STAGING = "create_staging"
    READ_SOURCE = "read_source"


class TranspileError(Sql2CsvError):
    """Fatal dump transpile failure with stage context."""

    def __init__(
        self,
        source_path: str,
        stage: TranspileStage,
        original_error: Exception,
        message: str,
    ):
        self.source_path = source_path
        self.stage = stage
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        return (
            f"Transpiling '{self.source_path}' failed at stage "
            f"'{self.stage.value}': {self.args[0]}"
        )

    def to_dict(self) -> Dict[str, str]:
        """Convert to structured dict for logging."""
        return {
            "error_type": "TranspileError",
            "source_path": self.source_path,
            "stage": self.stage.value,
            "message": str(self),
            "original_error_type": type(self.original_error).__name__,
            "original_error_message": str(self.original_error),
        }


class ExportStage(str, Enum):
    """Stages of a single table export."""

    RESOLVE_COLUMNS = "resolve_columns"
    OPEN_OUTPUT = "open_output"
    QUERY = "query"
    WRITE = "write"
    UNEXPECTED = "unexpected"


class ExportError(Sql2CsvError):
    """Export of one table failed; sibling tables are unaffected."""

    def __init__(
        self,
        table: str,
        stage: ExportStage,
        original_error: Exception,
        output_path: Optional[str] = None,
    ):
        self.table = table
        self.stage = stage
        self.original_error = original_error
        self.output_path = output_path
        super().__init__(f"{type(original_error).__name__}: {original_error}")

    def __str__(self) -> str:
        return (
            f"Error exporting table {self.table} at stage "
            f"'{self.stage.value}': {self.args[0]}"
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Convert to structured dict for logging."""
        return {
            "error_type": "ExportError",
            "table": self.table,
            "stage": self.stage.value,
            "output_path": self.output_path,
            "original_error_type": type(self.original_error).__name__,
            "original_error_message": str(self.original_error),
        }


class BulkLoadRowMismatch(Sql2CsvError):
    """A COPY data row does not have one field per target column."""

    def __init__(self, table: str, line_number: int, expected: int, actual: int):
        self.table = table
        self.line_number = line_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Row {line_number} of COPY block for {table} has {actual} fields, "
            f"expected {expected}"
        )
