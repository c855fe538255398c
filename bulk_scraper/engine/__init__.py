"""Engine components orchestrating discover → fetch → checkpoint → export."""

from .browser import BrowserSession
from .checkpoint import CheckpointStore, read_key_file
from .discovery import (
    BrowserDiscovery,
    DiscoveryStrategy,
    InfiniteScrollDiscovery,
    PaginatedDiscovery,
    build_discovery,
)
from .fetcher import FetchRetryEngine
from .keys import KeySet, normalize_key
from .models import (
    ArticleRecord,
    Checkpoint,
    DiscoveryResult,
    DiscoveryState,
    FetchAttempt,
    FetchResult,
)
from .parser import ArticleExtractor, LinkExtractor
from .pipeline import BatchPipeline
from .scheduler import run_bounded

__all__ = [
    "ArticleExtractor",
    "ArticleRecord",
    "BatchPipeline",
    "BrowserDiscovery",
    "BrowserSession",
    "Checkpoint",
    "CheckpointStore",
    "DiscoveryResult",
    "DiscoveryState",
    "DiscoveryStrategy",
    "FetchAttempt",
    "FetchResult",
    "FetchRetryEngine",
    "InfiniteScrollDiscovery",
    "KeySet",
    "LinkExtractor",
    "PaginatedDiscovery",
    "build_discovery",
    "normalize_key",
    "read_key_file",
    "run_bounded",
]
