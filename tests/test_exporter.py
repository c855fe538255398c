from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from bulk_scraper.engine.exporter import CSV_COLUMNS, CsvExporter, ResultExporter

SCRAPED_AT = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


def test_csv_quotes_embedded_delimiters_quotes_and_newlines(make_result) -> None:
    results = [make_result("https://a.test/1", title='a,"b"\nc', scraped_at=SCRAPED_AT)]

    text = CsvExporter.render(results)

    assert '"a,""b""\nc"' in text
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == list(CSV_COLUMNS)
    assert rows[1][1] == 'a,"b"\nc'


def test_csv_column_order_and_category_join(make_result) -> None:
    results = [
        make_result(
            "https://a.test/1",
            title="Budget",
            published_date="March 1, 2024",
            category=("News", "Local"),
            content="Body",
            reading_time="3 min to read",
            source="",
            scraped_at=SCRAPED_AT,
        ),
        make_result("https://a.test/2", success=False),
    ]

    rows = list(csv.reader(io.StringIO(CsvExporter.render(results))))

    assert rows[0] == [
        "URL",
        "Title",
        "Published Date",
        "Category",
        "Content",
        "Reading Time",
        "Source",
        "Scraped At",
    ]
    assert rows[1] == [
        "https://a.test/1",
        "Budget",
        "March 1, 2024",
        "News; Local",
        "Body",
        "3 min to read",
        "",
        "2024-03-01T12:30:00.000Z",
    ]
    # failures are not written to the CSV
    assert len(rows) == 2


def test_csv_header_written_without_successes(make_result) -> None:
    text = CsvExporter.render([make_result("https://a.test/1", success=False)])
    assert text == ",".join(CSV_COLUMNS) + "\n"


def test_json_export_layout_and_failed_keys_file(tmp_path: Path, make_result) -> None:
    exporter = ResultExporter(tmp_path)
    results = [
        make_result("https://a.test/1", scraped_at=SCRAPED_AT),
        make_result("https://a.test/2", success=False, error="Timed out after 30s"),
    ]

    paths = exporter.export(results, "json", "demo_final", timestamp="2024-03-01T12-30-00-000Z")

    assert set(paths) == {"json", "failed"}
    document = json.loads(paths["json"].read_text(encoding="utf-8"))
    assert document["metadata"]["totalArticles"] == 2
    assert document["metadata"]["successfulScrapes"] == 1
    assert document["metadata"]["failedScrapes"] == 1
    assert document["articles"][0] == {
        "url": "https://a.test/1",
        "title": "Title for https://a.test/1",
        "publishedDate": "",
        "category": [],
        "content": "",
        "readingTime": "",
        "source": "",
        "scrapedAt": "2024-03-01T12:30:00.000Z",
    }
    assert document["failedUrls"][0]["url"] == "https://a.test/2"
    assert document["failedUrls"][0]["error"] == "Timed out after 30s"

    assert paths["failed"].name == "failed_urls_2024-03-01T12-30-00-000Z.json"
    failed = json.loads(paths["failed"].read_text(encoding="utf-8"))
    assert failed["totalFailed"] == 1
    assert failed["urls"] == ["https://a.test/2"]
    assert failed["detailedErrors"][0]["error"] == "Timed out after 30s"


def test_both_formats_and_no_failed_file_when_all_succeed(tmp_path: Path, make_result) -> None:
    exporter = ResultExporter(tmp_path)

    paths = exporter.export([make_result("https://a.test/1")], "both", "demo_final")

    assert set(paths) == {"json", "csv"}
    assert paths["json"].suffix == ".json"
    assert paths["csv"].suffix == ".csv"
    assert not list(tmp_path.glob("failed_urls_*.json"))


def test_unknown_format_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unsupported export format"):
        ResultExporter(tmp_path).export([], "xml", "demo")
