"""Logging helpers for PoPM bootstrap."""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Callable, Optional

LOGGER_NAME = "popm-bootstrap"


def backup_path_for(path: Path, clock: Callable[[], float] = time.time) -> Path:
    """Unused <path>_backup_<unix_time> name next to path.

    If the name is taken the timestamp is bumped until a free one is found,
    so earlier backups are never overwritten.
    """
    stamp = int(clock())
    backup_path = path.with_name(f"{path.name}_backup_{stamp}")
    while backup_path.exists():
        stamp += 1
        backup_path = path.with_name(f"{path.name}_backup_{stamp}")
    return backup_path


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure logging for a bootstrap run.

    Every record is appended to the log file. Records are echoed to
    stdout only in verbose mode; operator-facing messages go through
    the terminal module instead.

    Args:
        verbose: Echo log records to stdout
        log_file: Append-only log file (skipped if None)

    Returns:
        Configured logger instance

    Raises:
        OSError: If the log file cannot be opened for appending
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Re-running setup must not duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    if verbose:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(logging.DEBUG)
        logger.addHandler(stream_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger


def sudo_prefix() -> list[str]:
    """Return ["sudo"] when not running as root, else an empty list."""
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return []
    return ["sudo"]


def mask_secret(secret: str, visible: int = 4) -> str:
    """Mask a secret for logging, keeping the last few characters.

    Args:
        secret: Secret string like a private key
        visible: Number of trailing characters to keep

    Returns:
        Masked string like "****abcd"
    """
    if not secret:
        return ""
    if len(secret) <= visible:
        return "*" * len(secret)
    return "*" * (len(secret) - visible) + secret[-visible:]
