"""I/O utilities for CSV import/export."""

from .export_csv import days_to_frame, export_schedule_csv
from .import_csv import import_cycle_csv, import_exceptions_csv

__all__ = [
    "import_cycle_csv",
    "import_exceptions_csv",
    "days_to_frame",
    "export_schedule_csv",
]
