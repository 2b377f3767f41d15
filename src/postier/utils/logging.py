"""Logging setup for the Postier command line and desktop front-ends."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import TextIO

__all__ = ["setup_logging", "resolve_level", "get_log_path"]

_DEFAULT_LOG_DIR = Path.home() / ".postier" / "logs"
_LOG_FILENAME = "postier.log"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore")
_LOG_PATH: Path | None = None


def resolve_level(debug: bool = False) -> int:
    """Pick the root level: ``POSTIER_LOG_LEVEL`` wins, then the debug flag."""

    named = os.environ.get("POSTIER_LOG_LEVEL", "").strip().upper()
    if named:
        level = logging.getLevelName(named)
        if isinstance(level, int):
            return level
    return logging.DEBUG if debug else logging.INFO


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    stream: TextIO | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install a rotating log file handler and, optionally, a console handler.

    Repeated calls are no-ops unless ``force`` is set, so the CLI can upgrade
    to debug logging once settings have been read.
    """

    global _LOG_PATH
    if _LOG_PATH is not None and not force:
        return _LOG_PATH

    target_dir = Path(log_dir or os.environ.get("POSTIER_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILENAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handlers: list[logging.Handler] = [file_handler]
    if console:
        handlers.append(logging.StreamHandler(stream))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    quiet_level = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _LOG_PATH = log_path
    return log_path


def get_log_path() -> Path | None:
    """Return the active log file, if logging has been configured."""

    return _LOG_PATH
