"""File based exporters writing JSON and CSV result files."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Sequence

import structlog

from ...infra import atomic_write_json, atomic_write_text
from ..models import FetchResult, isoformat, utcnow
from .base import BaseExporter, results_document

CSV_COLUMNS = (
    "URL",
    "Title",
    "Published Date",
    "Category",
    "Content",
    "Reading Time",
    "Source",
    "Scraped At",
)
EXPORT_FORMATS = ("json", "csv", "both")


def run_timestamp() -> str:
    """Filesystem-safe timestamp used in exported file names."""

    return isoformat(utcnow()).replace(":", "-").replace(".", "-")


class JsonExporter(BaseExporter):
    """Write metadata, article records and failed URLs as one JSON document."""

    extension = "json"

    def export(self, results: Sequence[FetchResult], base_name: str) -> Path:
        return atomic_write_json(self.path_for(base_name), results_document(results))


class CsvExporter(BaseExporter):
    """Write successful article records with a fixed column order."""

    extension = "csv"

    def export(self, results: Sequence[FetchResult], base_name: str) -> Path:
        return atomic_write_text(self.path_for(base_name), self.render(results))

    @staticmethod
    def render(results: Sequence[FetchResult]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for result in results:
            if not result.success:
                continue
            record = result.payload
            writer.writerow(
                (
                    record.url,
                    record.title,
                    record.published_date,
                    "; ".join(record.category),
                    record.content,
                    record.reading_time,
                    record.source,
                    isoformat(record.scraped_at),
                )
            )
        return buffer.getvalue()


class FailedKeysWriter:
    """Write the failed-keys artifact consumed by retry runs."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def write(self, results: Sequence[FetchResult], timestamp: str) -> Path | None:
        failed = [result for result in results if not result.success]
        if not failed:
            return None
        payload = {
            "generatedAt": isoformat(utcnow()),
            "totalFailed": len(failed),
            "urls": [result.key for result in failed],
            "detailedErrors": [result.failure_entry() for result in failed],
        }
        return atomic_write_json(self.output_dir / f"failed_urls_{timestamp}.json", payload)


class ResultExporter:
    """Export final results in the configured format(s)."""

    def __init__(self, output_dir: Path, logger: structlog.BoundLogger | None = None) -> None:
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logger or structlog.get_logger("bulk_scraper.exporter")
        self.failed_writer = FailedKeysWriter(output_dir)

    def _exporters(self, fmt: str) -> list[BaseExporter]:
        if fmt == "json":
            return [JsonExporter(self.output_dir)]
        if fmt == "csv":
            return [CsvExporter(self.output_dir)]
        if fmt == "both":
            return [JsonExporter(self.output_dir), CsvExporter(self.output_dir)]
        raise ValueError(f"Unsupported export format: {fmt}")

    def export(
        self, results: Sequence[FetchResult], fmt: str, base_name: str, timestamp: str | None = None
    ) -> dict[str, Path]:
        """Write ``results`` and return the written paths keyed by kind."""

        stamp = timestamp or run_timestamp()
        paths: dict[str, Path] = {}
        for exporter in self._exporters(fmt):
            paths[exporter.extension] = exporter.export(results, base_name)
            self.logger.info(
                "results_exported",
                format=exporter.extension,
                path=str(paths[exporter.extension]),
                total=len(results),
            )
        failed_path = self.failed_writer.write(results, stamp)
        if failed_path is not None:
            paths["failed"] = failed_path
            self.logger.info("failed_keys_exported", path=str(failed_path))
        return paths


__all__ = [
    "CSV_COLUMNS",
    "CsvExporter",
    "EXPORT_FORMATS",
    "FailedKeysWriter",
    "JsonExporter",
    "ResultExporter",
    "run_timestamp",
]
