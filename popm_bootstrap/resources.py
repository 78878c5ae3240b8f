"""Local resource checks for PoPM bootstrap."""

import logging
from pathlib import Path
from typing import Union

import psutil

from .errors import InsufficientStorageError
from .utils import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


def get_available_kb(path: Union[str, Path] = "/") -> int:
    """Free space on the filesystem holding path, in KB.

    The path need not exist yet; its nearest existing ancestor is measured
    instead, since that is where the directory will be created.

    Args:
        path: Any path on the target filesystem

    Returns:
        Available space in 1024-byte blocks
    """
    return psutil.disk_usage(str(nearest_existing(Path(path)))).free // 1024


def nearest_existing(path: Path) -> Path:
    """path itself if it exists, else its closest existing parent."""
    path = path.absolute()
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


class ResourceGuard:
    """Blocks a download when the target filesystem is too full.

    The check is advisory: space is not reserved, so another process
    can still fill the disk after it passes.
    """

    def __init__(self, path: Union[str, Path] = "/"):
        self.path = Path(path)

    def available_kb(self) -> int:
        return get_available_kb(self.path)

    def check(self, required_kb: int) -> None:
        """Fail if less than required_kb is free.

        Raises:
            InsufficientStorageError: If available space < required_kb
        """
        available = self.available_kb()
        logger.debug(f"Disk space on {self.path}: required={required_kb}KB available={available}KB")

        if available < required_kb:
            raise InsufficientStorageError(required_kb=required_kb, available_kb=available)
