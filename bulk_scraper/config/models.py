"""Pydantic models describing a bulk scraping run."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

RETRY_MIN_ATTEMPTS = 5
RETRY_MIN_TIMEOUT = 45.0


class DiscoveryMode(str, Enum):
    """How the listing source is advanced between discovery steps."""

    SCROLL = "scroll"
    PAGINATE = "paginate"


class DiscoverySettings(BaseModel):
    """Controls for the URL discovery phase."""

    mode: DiscoveryMode = DiscoveryMode.SCROLL
    listing_url: str = "https://trinidadexpress.com/news/"
    target_count: int = 10000
    timeout: float = 60.0
    scroll_delay: float = 2.0
    page_delay: float = 1.0
    max_steps: int = 50
    max_stagnant_steps: int = 5
    # Save the keys checkpoint after this many new keys ...
    save_interval: int = 100
    # ... or after this many steps that produced something, whichever comes first.
    save_every_steps: int = 10
    resume_from_file: bool = True
    output_file: str | None = None
    link_selector: str = 'a[href*="article_"]'
    allowed_hosts: list[str] = Field(default_factory=lambda: ["trinidadexpress.com"])
    exclude_patterns: list[str] = Field(
        default_factory=lambda: [
            "facebook.com",
            "twitter.com",
            "wa.me",
            "mailto:",
            "utm_medium=social",
        ]
    )
    page_url_template: str = "{base}?page={page}"
    first_page: int = 1

    @model_validator(mode="after")
    def _validate_budgets(self) -> "DiscoverySettings":
        if self.target_count < 1:
            raise ValueError("target_count must be >= 1")
        if self.max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        if self.max_stagnant_steps < 1:
            raise ValueError("max_stagnant_steps must be >= 1")
        if self.save_interval < 1 or self.save_every_steps < 1:
            raise ValueError("save_interval and save_every_steps must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.scroll_delay < 0 or self.page_delay < 0:
            raise ValueError("scroll_delay and page_delay must be >= 0")
        if "{page}" not in self.page_url_template:
            raise ValueError("page_url_template must contain a {page} placeholder")
        return self


class FieldSelectors(BaseModel):
    """CSS selectors used by the article extractor."""

    title: str = ".asset .asset-header h1"
    published_date: str = ".asset-date"
    category: str = ".breadcrumb > li"
    content: str = ".asset .asset-body p"
    reading_time_pattern: str = r"\d+\s+min to read"
    source_pattern: str = r"Reprinted from[^\n<]*"


class FetchSettings(BaseModel):
    """Per-key fetch policy: attempts, timeouts and backoff."""

    timeout: float = 30.0
    retries: int = 3
    delay: float = 1.0
    headless: bool = True
    wait_selector: str | None = ".asset .asset-header h1"
    viewport: tuple[int, int] = (2600, 1080)
    selectors: FieldSelectors = Field(default_factory=FieldSelectors)

    @field_validator("viewport", mode="before")
    @classmethod
    def _coerce_viewport(cls, value: Any) -> tuple[int, int]:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            width, height = int(value[0]), int(value[1])
            if width <= 0 or height <= 0:
                raise ValueError("viewport dimensions must be positive")
            return (width, height)
        raise ValueError("viewport expects [width, height]")

    @model_validator(mode="after")
    def _validate_policy(self) -> "FetchSettings":
        if self.retries < 1:
            raise ValueError("retries must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")
        return self

    def amplified(self) -> "FetchSettings":
        """Return the policy used when re-running previously failed keys."""

        return self.model_copy(
            update={
                "retries": max(self.retries + 2, RETRY_MIN_ATTEMPTS),
                "timeout": max(self.timeout * 1.5, RETRY_MIN_TIMEOUT),
            }
        )


class PipelineSettings(BaseModel):
    """Batching and concurrency for the fetch phase."""

    batch_size: int = 50
    concurrency: int = 3
    checkpoint_every: int = 5
    batch_pause: float = 2.0

    @model_validator(mode="after")
    def _validate_positive(self) -> "PipelineSettings":
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.checkpoint_every < 1:
            raise ValueError("checkpoint_every must be >= 1")
        if self.batch_pause < 0:
            raise ValueError("batch_pause must be >= 0")
        return self


class ExportSettings(BaseModel):
    """Where and how final results are written."""

    export_format: Literal["json", "csv", "both"] = "json"
    output_dir: Path = Field(default=Path("output"))
    output_prefix: str = "bulk_scrape"

    @field_validator("output_dir", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("output_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("output_prefix cannot be empty")
        return value

    @property
    def keys_file(self) -> str:
        return f"{self.output_prefix}_urls.json"

    @property
    def progress_file(self) -> str:
        return f"{self.output_prefix}_progress.json"


class RunConfig(BaseModel):
    """Full definition of one bulk scraping run."""

    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)

    def resolved_output_dir(self, base_dir: Path) -> Path:
        """Return the output directory relative to the project home."""

        output_dir = self.export.output_dir
        if not output_dir.is_absolute():
            return (base_dir / output_dir).resolve()
        return output_dir


__all__ = [
    "DiscoveryMode",
    "DiscoverySettings",
    "ExportSettings",
    "FetchSettings",
    "FieldSelectors",
    "PipelineSettings",
    "RETRY_MIN_ATTEMPTS",
    "RETRY_MIN_TIMEOUT",
    "RunConfig",
]
