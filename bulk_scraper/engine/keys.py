"""Key normalisation and the append-only deduplicating key set."""

from __future__ import annotations

from typing import Iterable, Iterator
from urllib.parse import urljoin, urlsplit, urlunsplit


def normalize_key(raw: str, base_url: str | None = None) -> str:
    """Return the canonical form of an item URL.

    Relative references are resolved against ``base_url``; the query string and
    fragment are dropped and scheme/host are lower-cased. Applying the function
    to its own output returns the same value.
    """

    candidate = raw.strip()
    if base_url:
        candidate = urljoin(base_url, candidate)
    parts = urlsplit(candidate)
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, "", ""))


class KeySet:
    """Insertion-ordered set of normalised keys. Keys are never removed."""

    def __init__(self, keys: Iterable[str] | None = None) -> None:
        self._keys: dict[str, None] = {}
        if keys:
            self.update(keys)

    def add(self, raw: str) -> bool:
        key = normalize_key(raw)
        if not key or key in self._keys:
            return False
        self._keys[key] = None
        return True

    def update(self, raws: Iterable[str]) -> int:
        """Insert every key and return how many were new."""

        return sum(1 for raw in raws if self.add(raw))

    def to_list(self) -> list[str]:
        return list(self._keys)

    def __contains__(self, raw: object) -> bool:
        return isinstance(raw, str) and normalize_key(raw) in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)


__all__ = ["KeySet", "normalize_key"]
