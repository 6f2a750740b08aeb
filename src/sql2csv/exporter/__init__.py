"""
CSV export of tables: single table exporter and concurrent orchestrator.
"""

from .orchestrator import ExportJob, ExportReport, ExportResult, run_exports
from .table_exporter import TableExporter, export_table, format_value

__all__ = [
    "ExportJob",
    "ExportReport",
    "ExportResult",
    "run_exports",
    "TableExporter",
    "export_table",
    "format_value",
]
