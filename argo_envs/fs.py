"""Filesystem helpers for moving application directories between working trees."""

import logging
from pathlib import Path
import shutil

from .exceptions import InputException

_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


def copy_dir(source: Path, destination: Path) -> None:
    """Recursively copy `source` into `destination`, preserving file modes.

    The destination and any missing parents are created. Files that already
    exist in the destination are overwritten, other existing files are kept.
    """
    if not source.is_dir():
        raise InputException(f"Unable to copy, source directory does not exist: {source}")
    _LOGGER.debug("Copying %s to %s", source, destination)
    shutil.copytree(source, destination, dirs_exist_ok=True)


def remove_dir(path: Path) -> None:
    """Remove a directory tree if it exists."""
    if not path.exists():
        _LOGGER.debug("Directory already removed: %s", path)
        return
    _LOGGER.debug("Removing %s", path)
    shutil.rmtree(path)
