"""Infra layer utilities (atomic file storage)."""

from .storage import atomic_write_json, atomic_write_text, read_json

__all__ = ["atomic_write_json", "atomic_write_text", "read_json"]
