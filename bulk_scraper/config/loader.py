"""Configuration loading helpers for bulk_scraper."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .models import RunConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
DEFAULT_CONFIG_FILENAME = "bulk_scraper.yaml"

# Flat option name -> config section. Mirrors the run options exposed on the CLI.
OVERRIDE_SECTIONS: dict[str, str] = {
    "target_count": "discovery",
    "scroll_delay": "discovery",
    "page_delay": "discovery",
    "save_interval": "discovery",
    "resume_from_file": "discovery",
    "listing_url": "discovery",
    "mode": "discovery",
    "max_steps": "discovery",
    "timeout": "fetch",
    "retries": "fetch",
    "delay": "fetch",
    "headless": "fetch",
    "concurrency": "pipeline",
    "batch_size": "pipeline",
    "export_format": "export",
    "output_dir": "export",
    "output_prefix": "export",
}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the project home."""

    project_root: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("BULK_SCRAPER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path.cwd()).resolve()
        self.project_root = root
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def default_config_path(self) -> Path:
        return self.project_root / DEFAULT_CONFIG_FILENAME


class ConfigRepository:
    """Read, write and override run configurations."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()

    def load(self, path: Path | None = None) -> RunConfig:
        target = path or self.locator.default_config_path()
        if path is not None and not target.exists():
            raise FileNotFoundError(f"Run configuration not found: {target}")
        if not target.exists():
            return RunConfig()
        if target.suffix not in CONFIG_EXTENSIONS:
            raise ValueError(f"Unsupported configuration format: {target.suffix}")
        return RunConfig.model_validate(_read_file(target))

    def save(self, config: RunConfig, path: Path | None = None) -> Path:
        target = path or self.locator.default_config_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        _write_file(target, config.model_dump(mode="json"))
        return target

    @staticmethod
    def apply_overrides(config: RunConfig, **overrides: Any) -> RunConfig:
        """Return a validated copy of ``config`` with flat option overrides applied.

        Option names follow the run option surface (``target_count``,
        ``batch_size``...); camelCase spellings such as ``targetCount`` are
        accepted too. ``None`` values are ignored.
        """

        payload = config.model_dump()
        for raw_name, value in overrides.items():
            if value is None:
                continue
            name = _snake_case(raw_name)
            section = OVERRIDE_SECTIONS.get(name)
            if section is None:
                raise ValueError(f"Unknown configuration option: {raw_name}")
            payload[section][name] = value
        return RunConfig.model_validate(payload)


__all__ = ["ConfigLocator", "ConfigRepository", "CONFIG_EXTENSIONS", "OVERRIDE_SECTIONS"]
