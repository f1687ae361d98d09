"""Loguru sink setup.

The TUI owns the terminal, so the default stderr sink is always removed.
A file sink is added only when verbose logging or an explicit log file is
requested.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from platformdirs import user_log_dir

from .config import APP_NAME

LOG_FILENAME = "siff.log"


def default_log_path() -> Path:
    return Path(user_log_dir(APP_NAME, appauthor=False)) / LOG_FILENAME


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> Path | None:
    """Reset loguru sinks and return the file sink path, if any."""
    logger.remove()
    if not verbose and log_file is None:
        return None

    target = log_file if log_file is not None else default_log_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(target),
        level="DEBUG" if verbose else "INFO",
        rotation="5 MB",
        retention=3,
        enqueue=True,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {name}:{function}:{line} - {message}",
    )
    logger.info(f"Logging to {target}")
    return target


__all__ = ["configure_logging", "default_log_path"]
