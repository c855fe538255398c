"""Value objects passed between discovery, fetching and export."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .keys import KeySet


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(f"Invalid timestamp: {value!r}")


@dataclass(frozen=True, slots=True)
class ArticleRecord:
    """Structured record extracted from one article page."""

    url: str
    title: str = ""
    published_date: str = ""
    category: tuple[str, ...] = ()
    content: str = ""
    reading_time: str = ""
    source: str = ""
    scraped_at: datetime = field(default_factory=utcnow)

    @classmethod
    def placeholder(cls, url: str) -> "ArticleRecord":
        """Empty-field record carried by failed results."""

        return cls(url=url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "publishedDate": self.published_date,
            "category": list(self.category),
            "content": self.content,
            "readingTime": self.reading_time,
            "source": self.source,
            "scrapedAt": isoformat(self.scraped_at),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ArticleRecord":
        category = payload.get("category") or ()
        if isinstance(category, str):
            category = tuple(part.strip() for part in category.split(";") if part.strip())
        return cls(
            url=str(payload["url"]),
            title=str(payload.get("title") or ""),
            published_date=str(payload.get("publishedDate") or ""),
            category=tuple(str(item) for item in category),
            content=str(payload.get("content") or ""),
            reading_time=str(payload.get("readingTime") or ""),
            source=str(payload.get("source") or ""),
            scraped_at=parse_timestamp(payload.get("scrapedAt") or utcnow()),
        )


@dataclass(frozen=True, slots=True)
class FetchAttempt:
    """Outcome of a single attempt at fetching one key."""

    key: str
    attempt_number: int
    payload: ArticleRecord | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.payload is not None


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Terminal outcome for one key after all attempts."""

    key: str
    success: bool
    payload: ArticleRecord
    error: str | None = None
    completed_at: datetime = field(default_factory=utcnow)
    attempts: int = 1

    @classmethod
    def from_attempts(cls, attempts: list[FetchAttempt]) -> "FetchResult":
        """Fold the attempts made for one key into its result."""

        if not attempts:
            raise ValueError("At least one attempt is required")
        last = attempts[-1]
        if last.succeeded:
            return cls(key=last.key, success=True, payload=last.payload, attempts=len(attempts))
        return cls(
            key=last.key,
            success=False,
            payload=ArticleRecord.placeholder(last.key),
            error=last.error or "Max retries exceeded",
            attempts=len(attempts),
        )

    def failure_entry(self) -> dict[str, Any]:
        return {"url": self.key, "error": self.error, "timestamp": isoformat(self.completed_at)}


@dataclass(slots=True)
class DiscoveryState:
    """Mutable bookkeeping owned by a single discovery run."""

    collected: KeySet
    target_count: int
    attempts_made: int = 0
    stagnant_steps: int = 0
    new_keys: int = 0
    new_since_save: int = 0
    steps_since_save: int = 0

    @property
    def target_reached(self) -> bool:
        return len(self.collected) >= self.target_count


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    keys: list[str]
    total_collected: int
    success: bool
    error: str | None = None
    new_keys: int = 0
    steps: int = 0


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Snapshot of discovered keys and fetch results."""

    saved_at: datetime
    keys: tuple[str, ...] = ()
    results: tuple[FetchResult, ...] = ()

    @property
    def succeeded_keys(self) -> set[str]:
        return {result.key for result in self.results if result.success}


__all__ = [
    "ArticleRecord",
    "Checkpoint",
    "DiscoveryResult",
    "DiscoveryState",
    "FetchAttempt",
    "FetchResult",
    "isoformat",
    "parse_timestamp",
    "utcnow",
]
