"""Merging trees of different filesets."""

import logging
from typing import Dict, Mapping

from .core import FileEntry

logger = logging.getLogger(__name__)


def merge_entries(a: FileEntry, b: FileEntry) -> FileEntry:
    """Pick the entry that survives when two filesets share a path.

    The newer entry (larger mtime) wins; on a tie ``a`` wins. A warning is
    logged if the two differ in content or metadata. The loser's metadata
    is laid over the winner's, so the loser's keys win on collision.
    """
    if a.mtime < b.mtime:
        winner, loser = b, a
    else:
        winner, loser = a, b

    if a.content_id != b.content_id or a.meta != b.meta:
        logger.warning(
            "File at path %s was overwritten while merging filesets. "
            "Using the file timestamped %s, which is newer than %s",
            winner.path, winner.mtime, loser.mtime,
        )

    # model_copy skips validation, so build a new entry to get read-only meta
    return FileEntry(
        path=winner.path,
        content_id=winner.content_id,
        mtime=winner.mtime,
        size=winner.size,
        meta={**winner.meta, **loser.meta},
    )


def merge_trees(a: Mapping[str, FileEntry], b: Mapping[str, FileEntry]) -> Dict[str, FileEntry]:
    """Union of two trees, resolving shared paths with :func:`merge_entries`."""
    result = dict(a)
    for path, entry in b.items():
        existing = result.get(path)
        result[path] = entry if existing is None else merge_entries(existing, entry)
    return result
