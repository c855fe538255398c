"""Exception hierarchy shared across bulk_scraper components."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .engine.models import DiscoveryResult


class BulkScraperError(Exception):
    """Base class for errors raised by bulk_scraper."""


class ExtractionError(BulkScraperError):
    """Raised by extractors when a loaded document lacks the expected structure."""


class CheckpointError(BulkScraperError):
    """Raised when a checkpoint or failed-keys file cannot be read."""

    def __init__(self, path: Path, problem: str) -> None:
        self.path = path
        self.problem = problem
        super().__init__(f"Invalid checkpoint file {path}: {problem}")


class SourceUnreachableError(BulkScraperError):
    """Discovery aborted because the listing source could not be accessed."""

    def __init__(self, result: "DiscoveryResult") -> None:
        self.result = result
        super().__init__(
            f"Listing source unreachable after collecting {result.total_collected} keys: {result.error}"
        )


__all__ = [
    "BulkScraperError",
    "CheckpointError",
    "ExtractionError",
    "SourceUnreachableError",
]
