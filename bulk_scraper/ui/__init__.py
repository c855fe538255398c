"""Terminal UI helpers."""

from .progress import FetchTally, ProgressReporter

__all__ = ["FetchTally", "ProgressReporter"]
