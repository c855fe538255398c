"""Exporter SPI and implementations."""

from .base import BaseExporter, parse_results_document, results_document
from .file_exporter import (
    CSV_COLUMNS,
    EXPORT_FORMATS,
    CsvExporter,
    FailedKeysWriter,
    JsonExporter,
    ResultExporter,
    run_timestamp,
)

__all__ = [
    "BaseExporter",
    "CSV_COLUMNS",
    "CsvExporter",
    "EXPORT_FORMATS",
    "FailedKeysWriter",
    "JsonExporter",
    "ResultExporter",
    "parse_results_document",
    "results_document",
    "run_timestamp",
]
