"""Logging setup shared by the CLI and the service."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# charset-normalizer reports every probe it makes; dask chatters per task
NOISY_LOGGERS = ("charset_normalizer", "distributed", "dask")


def build_handlers(log_path: Path | None = None) -> list[logging.Handler]:
    """Stderr handler plus an optional file handler.

    Stdout is kept free for `preview` and `-` outputs, which carry cleaned
    records.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    return handlers


def configure_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure root logging handlers and formatting.

    Third-party loggers stay at WARNING unless `level` is DEBUG.

    Args:
        log_path: Optional path to a file where logs will be written.
        level: Logging level (defaults to INFO).
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=build_handlers(log_path),
    )

    quiet = level if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
