"""Durable checkpoints for discovered keys and fetch results."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import structlog

from ..errors import CheckpointError
from ..infra import atomic_write_json, read_json
from .exporter.base import parse_results_document, results_document
from .models import Checkpoint, FetchResult, isoformat, parse_timestamp, utcnow


def _read_document(path: Path) -> Any:
    try:
        return read_json(path)
    except json.JSONDecodeError as exc:
        raise CheckpointError(path, f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    except UnicodeDecodeError as exc:
        raise CheckpointError(path, f"not valid UTF-8 (byte offset {exc.start})") from exc
    except OSError as exc:
        raise CheckpointError(path, str(exc)) from exc


def read_key_file(path: Path) -> list[str]:
    """Read keys from a keys checkpoint, a failed-keys file or a bare JSON array."""

    if not path.exists():
        raise CheckpointError(path, "file does not exist")
    payload = _read_document(path)
    urls = payload.get("urls") if isinstance(payload, dict) else payload
    if not isinstance(urls, list):
        raise CheckpointError(path, "expected an array of URLs or an object with a 'urls' array")
    if not all(isinstance(url, str) for url in urls):
        raise CheckpointError(path, "every URL entry must be a string")
    return list(urls)


class CheckpointStore:
    """Write-then-replace snapshots for one run prefix.

    Two files live side by side in ``directory``: the keys checkpoint written
    during discovery and the results checkpoint written by the batch pipeline.
    """

    def __init__(
        self,
        directory: Path,
        keys_file: str = "bulk_scrape_urls.json",
        progress_file: str = "bulk_scrape_progress.json",
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.directory = directory
        self.keys_path = directory / keys_file
        self.progress_path = directory / progress_file
        self.logger = logger or structlog.get_logger("bulk_scraper.checkpoint")
        self.directory.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Discovered keys
    # ------------------------------------------------------------------
    def save_keys(self, keys: Sequence[str]) -> Path:
        payload = {
            "collectedAt": isoformat(utcnow()),
            "totalUrls": len(keys),
            "urls": list(keys),
        }
        atomic_write_json(self.keys_path, payload)
        self.logger.info("keys_checkpoint_saved", total=len(keys), path=str(self.keys_path))
        return self.keys_path

    def load_keys(self) -> list[str]:
        """Return previously discovered keys, or an empty list when none were saved."""

        if not self.keys_path.exists():
            self.logger.info("keys_checkpoint_missing", path=str(self.keys_path))
            return []
        keys = read_key_file(self.keys_path)
        self.logger.info("keys_checkpoint_loaded", total=len(keys), path=str(self.keys_path))
        return keys

    # ------------------------------------------------------------------
    # Fetch results
    # ------------------------------------------------------------------
    def save_results(self, results: Sequence[FetchResult], batch_number: int) -> Path:
        payload = results_document(
            results, batchNumber=batch_number, savedAt=isoformat(utcnow())
        )
        atomic_write_json(self.progress_path, payload)
        self.logger.info(
            "results_checkpoint_saved",
            batch=batch_number,
            total=len(results),
            path=str(self.progress_path),
        )
        return self.progress_path

    def load_results(self) -> list[FetchResult]:
        if not self.progress_path.exists():
            return []
        return self._parse_results(_read_document(self.progress_path))

    def load(self) -> Checkpoint:
        """Return both checkpoints; missing files yield empty sections."""

        keys = tuple(self.load_keys())
        if not self.progress_path.exists():
            return Checkpoint(saved_at=utcnow(), keys=keys)
        payload = _read_document(self.progress_path)
        results = tuple(self._parse_results(payload))
        return Checkpoint(saved_at=_saved_at(payload.get("metadata")), keys=keys, results=results)

    def _parse_results(self, payload: Any) -> list[FetchResult]:
        try:
            return parse_results_document(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise CheckpointError(self.progress_path, f"malformed results document: {exc}") from exc


def _saved_at(metadata: Any) -> datetime:
    if not isinstance(metadata, dict):
        return utcnow()
    stamp = metadata.get("savedAt") or metadata.get("exportedAt")
    if stamp is None:
        return utcnow()
    try:
        return parse_timestamp(stamp)
    except ValueError:
        # An unparseable timestamp falls back to the load time.
        return utcnow()


__all__ = ["CheckpointStore", "read_key_file"]
