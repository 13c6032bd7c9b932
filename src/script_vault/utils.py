"""Utility functions for script-vault."""

import os
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FILE_NAME = "script-vault.log"


def now_utc() -> datetime:
    """Return the current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_timestamp(timestamp: float) -> datetime:
    """Convert a POSIX timestamp (e.g. st_mtime) to a UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def generate_id() -> str:
    """Generate a new opaque script id."""
    return str(uuid.uuid4())


def log_dir_path() -> Path:
    """Directory that holds the rotating log file."""
    if config_dir := os.getenv("SCRIPT_VAULT_CONFIG_DIR"):
        return Path(config_dir)
    return Path(os.getenv("HOME", Path.home())) / ".script-vault"


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_to_stdout: bool = False,
    log_file: Optional[Path] = None,
) -> None:  # pragma: no cover
    """Configure loguru sinks.

    Args:
        log_level: Minimum level for every sink
        log_to_file: Write to a rotating file in the config directory
        log_to_stdout: Write to stderr (stdout is reserved for command output)
        log_file: Override the log file location
    """
    logger.remove()

    if log_to_file:
        path = log_file or log_dir_path() / LOG_FILE_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            level=log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
            colorize=False,
        )

    if log_to_stdout:
        logger.add(sys.stderr, level=log_level, backtrace=True, diagnose=False, colorize=True)

    logger.debug(f"Logging configured: level={log_level}, file={log_to_file}, stdout={log_to_stdout}")
