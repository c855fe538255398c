"""DOM parsing helpers for listing pages and article pages."""

from __future__ import annotations

import re
from typing import Iterable, Protocol
from urllib.parse import urljoin, urlsplit

from selectolax.lexbor import LexborHTMLParser

from ..config import DiscoverySettings, FieldSelectors
from ..errors import ExtractionError
from .keys import normalize_key
from .models import ArticleRecord


class RecordExtractor(Protocol):
    """Contract for turning a loaded document into a record."""

    def extract(self, html: str, url: str) -> ArticleRecord:
        """Return the record for ``url`` or raise ExtractionError."""


class LinkExtractor:
    """Pull candidate item keys out of a listing page."""

    def __init__(
        self,
        selector: str,
        allowed_hosts: Iterable[str] = (),
        exclude_patterns: Iterable[str] = (),
    ) -> None:
        self.selector = selector
        self.allowed_hosts = tuple(host.lower() for host in allowed_hosts)
        self.exclude_patterns = tuple(exclude_patterns)

    @classmethod
    def from_settings(cls, settings: DiscoverySettings) -> "LinkExtractor":
        return cls(settings.link_selector, settings.allowed_hosts, settings.exclude_patterns)

    def extract_keys(self, html: str, base_url: str) -> list[str]:
        parser = LexborHTMLParser(html)
        keys: list[str] = []
        seen: set[str] = set()
        for node in parser.css(self.selector):
            href = (node.attributes.get("href") or "").strip()
            if not href or href.startswith(("javascript:", "#", "mailto:")):
                continue
            absolute = urljoin(base_url, href)
            if any(pattern in absolute for pattern in self.exclude_patterns):
                continue
            if not self._host_allowed(absolute):
                continue
            key = normalize_key(absolute)
            if key not in seen:
                seen.add(key)
                keys.append(key)
        return keys

    def _host_allowed(self, url: str) -> bool:
        if not self.allowed_hosts:
            return True
        host = (urlsplit(url).hostname or "").lower()
        return any(host == allowed or host.endswith("." + allowed) for allowed in self.allowed_hosts)


class ArticleExtractor:
    """Build ArticleRecords from article HTML using configured selectors."""

    def __init__(self, selectors: FieldSelectors | None = None) -> None:
        self.selectors = selectors or FieldSelectors()
        self._reading_time = re.compile(self.selectors.reading_time_pattern, re.IGNORECASE)
        self._source = re.compile(self.selectors.source_pattern)

    def extract(self, html: str, url: str) -> ArticleRecord:
        parser = LexborHTMLParser(html)
        title = self._text(parser, self.selectors.title)
        if not title:
            raise ExtractionError(f"Missing title element '{self.selectors.title}' on {url}")
        body_text = parser.body.text(separator="\n") if parser.body is not None else ""
        return ArticleRecord(
            url=url,
            title=title,
            published_date=self._published_date(parser),
            category=tuple(self._categories(parser)),
            content="\n\n".join(self._texts(parser, self.selectors.content)),
            reading_time=self._search(self._reading_time, body_text),
            source=self._search(self._source, body_text),
        )

    def _published_date(self, parser: LexborHTMLParser) -> str:
        node = parser.css_first(self.selectors.published_date)
        if node is None:
            return ""
        text = node.text(separator=" ", strip=True)
        if text:
            return text
        # Some templates only populate the machine readable attribute.
        return (node.attributes.get("datetime") or "").strip()

    def _categories(self, parser: LexborHTMLParser) -> list[str]:
        return [text for text in self._texts(parser, self.selectors.category) if text != "Home"]

    @staticmethod
    def _text(parser: LexborHTMLParser, selector: str) -> str:
        node = parser.css_first(selector)
        return node.text(separator=" ", strip=True) if node is not None else ""

    @staticmethod
    def _texts(parser: LexborHTMLParser, selector: str) -> list[str]:
        texts = (node.text(separator=" ", strip=True) for node in parser.css(selector))
        return [text for text in texts if text]

    @staticmethod
    def _search(pattern: re.Pattern[str], text: str) -> str:
        match = pattern.search(text)
        return match.group(0).strip() if match else ""


__all__ = ["ArticleExtractor", "LinkExtractor", "RecordExtractor"]
