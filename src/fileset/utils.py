"""Utility functions for fileset."""

import logging
import os
import time
from pathlib import PurePosixPath

logger = logging.getLogger(__name__)


def normalize_path(path) -> str:
    """Normalize a tree path to a relative POSIX string.

    Backslashes are treated as separators and redundant ``.`` components
    are dropped.

    Raises:
        ValueError: If the path is empty, absolute or escapes the root
    """
    text = str(path).replace("\\", "/")
    pure = PurePosixPath(text)
    if pure.is_absolute():
        raise ValueError(f"Fileset paths must be relative: {path!r}")
    parts = [p for p in pure.parts if p != "."]
    if not parts:
        raise ValueError(f"Empty fileset path: {path!r}")
    if ".." in parts:
        raise ValueError(f"Fileset path escapes its root: {path!r}")
    return "/".join(parts)


def mtime_millis(stat: os.stat_result) -> int:
    """Last-modified time of a stat result in integer milliseconds."""
    return stat.st_mtime_ns // 1_000_000


def now_millis() -> int:
    """Current wall-clock time in integer milliseconds."""
    return time.time_ns() // 1_000_000


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def fsync_dir(path) -> None:
    """Fsync a directory so that renames inside it are durable.

    Best effort: Windows and some filesystems don't support directory fsync.
    """
    try:
        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY
        fd = os.open(str(path), flags)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        logger.debug("Directory fsync not supported for %s", path)
