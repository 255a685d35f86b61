"""Environment-backed defaults for the CLI and the service.

Values are read from the process environment after loading a `.env` file
from the working directory, if one exists.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv

from .stream import DEFAULT_CHUNK_SIZE


@dataclass(frozen=True)
class Settings:
    """Container for sanitizer defaults read from the environment.

    Attributes:
        delimiter: Delimiter spelling (parsed later by `SanitizerConfig`).
        encoding: Input encoding, or "auto".
        workers: Parallel chunk workers for file runs.
        chunk_size: Target chunk size in bytes for parallel runs.
        log_path: Optional log file.
    """
    delimiter: str
    encoding: str
    workers: int
    chunk_size: int
    log_path: Path | None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1, got {value}")
    return value


def get_settings() -> Settings:
    """Read environment variables and return a frozen `Settings` object.

    Raises:
        RuntimeError: if an integer setting is malformed.
    """
    load_dotenv()

    log_path = os.getenv("SANITIZER_LOG_PATH", "").strip()

    return Settings(
        delimiter=os.getenv("SANITIZER_DELIMITER", ","),
        encoding=os.getenv("SANITIZER_ENCODING", "utf-8").strip() or "utf-8",
        workers=_int_env("SANITIZER_WORKERS", 1),
        chunk_size=_int_env("SANITIZER_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        log_path=Path(log_path) if log_path else None,
    )
