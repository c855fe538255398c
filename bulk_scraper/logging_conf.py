"""JSON logging for bulk_scraper: stdlib handlers fed by structlog."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

import structlog

ROOT_LOGGER = "bulk_scraper"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_LOGGING_INITIALISED = False


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def _logging_dict(level: str, log_dir: Path) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "pythonjsonlogger.json.JsonFormatter", "fmt": JSON_FORMAT},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "scraper_file": _file_handler(log_dir / "scraper.log", "INFO"),
            "error_file": _file_handler(log_dir / "error.log", "ERROR"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "scraper_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Set up logging once per process and return the application logger.

    Every record is written as one JSON object to stderr and ``scraper.log``;
    errors are also copied to ``error.log``.
    """

    global _LOGGING_INITIALISED
    log_dir = log_dir or Path.cwd() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    if _LOGGING_INITIALISED:
        return structlog.get_logger(ROOT_LOGGER)

    logging.config.dictConfig(_logging_dict("DEBUG" if verbose else "INFO", log_dir))
    # render_to_log_kwargs: event name -> record message, bound values -> JSON keys.
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def _attach_run_file(logger_name: str, path: Path) -> None:
    target = logging.getLogger(logger_name)
    for handler in target.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(path):
            return
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.INFO)
    shared = logging.getLogger(ROOT_LOGGER).handlers
    if shared:
        handler.setFormatter(shared[0].formatter)
    target.addHandler(handler)


def run_logger(prefix: str, log_dir: Path | None = None, verbose: bool = False) -> structlog.BoundLogger:
    """Logger bound to one run; its records also land in ``runs/<prefix>.log``."""

    log_dir = log_dir or Path.cwd() / "logs"
    configure_logging(verbose, log_dir)
    run_log = log_dir / "runs" / f"{prefix}.log"
    run_log.parent.mkdir(parents=True, exist_ok=True)
    logger_name = f"{ROOT_LOGGER}.run.{prefix}"
    _attach_run_file(logger_name, run_log)
    return structlog.get_logger(logger_name).bind(run=prefix)


__all__ = ["configure_logging", "run_logger"]
