"""Resumable bulk URL discovery and article scraping."""

from .config import RunConfig
from .errors import BulkScraperError, CheckpointError, ExtractionError, SourceUnreachableError
from .orchestrator import BulkScraper, RunSummary

__version__ = "0.1.0"

__all__ = [
    "BulkScraper",
    "BulkScraperError",
    "CheckpointError",
    "ExtractionError",
    "RunConfig",
    "RunSummary",
    "SourceUnreachableError",
    "__version__",
]
