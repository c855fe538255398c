"""Exporter Service Provider Interface and the shared results document layout."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence

from ..models import ArticleRecord, FetchResult, isoformat, parse_timestamp, utcnow


def results_document(results: Sequence[FetchResult], **metadata: Any) -> dict[str, Any]:
    """Build the ``{metadata, articles, failedUrls}`` document for ``results``."""

    succeeded = [result for result in results if result.success]
    failed = [result for result in results if not result.success]
    header: dict[str, Any] = {
        "totalArticles": len(results),
        "successfulScrapes": len(succeeded),
        "failedScrapes": len(failed),
        "exportedAt": isoformat(utcnow()),
    }
    header.update(metadata)
    return {
        "metadata": header,
        "articles": [result.payload.to_dict() for result in succeeded],
        "failedUrls": [result.failure_entry() for result in failed],
    }


def parse_results_document(payload: Any) -> list[FetchResult]:
    """Rebuild FetchResults from a results document. Raises ValueError/KeyError/TypeError."""

    if not isinstance(payload, dict):
        raise ValueError("results document must be a JSON object")
    articles = payload.get("articles", [])
    failures = payload.get("failedUrls", [])
    if not isinstance(articles, list) or not isinstance(failures, list):
        raise ValueError("'articles' and 'failedUrls' must be arrays")
    results: list[FetchResult] = []
    for article in articles:
        if not isinstance(article, dict):
            raise ValueError(f"article entries must be objects, got {type(article).__name__}")
        record = ArticleRecord.from_dict(article)
        results.append(
            FetchResult(key=record.url, success=True, payload=record, completed_at=record.scraped_at)
        )
    for entry in failures:
        if not isinstance(entry, dict):
            raise ValueError(f"failedUrls entries must be objects, got {type(entry).__name__}")
        url = str(entry["url"])
        results.append(
            FetchResult(
                key=url,
                success=False,
                payload=ArticleRecord.placeholder(url),
                error=entry.get("error"),
                completed_at=parse_timestamp(entry.get("timestamp") or utcnow()),
            )
        )
    return results


class BaseExporter(ABC):
    """Uniform exporter contract enabling plug-and-play outputs."""

    extension: str = ""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def path_for(self, base_name: str) -> Path:
        return self.output_dir / f"{base_name}.{self.extension}"

    @abstractmethod
    def export(self, results: Sequence[FetchResult], base_name: str) -> Path:
        """Persist ``results`` and return the written path."""


__all__ = ["BaseExporter", "parse_results_document", "results_document"]
