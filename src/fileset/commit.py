"""Materialize a tree into a concrete directory.

The destination ends up mirroring the tree exactly: every entry is present
as a hard link to (or copy of) its blob, and anything else found under the
destination is removed. Committing the same tree twice is a no-op the
second time.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Mapping, Optional, Set

from .blobstore import BlobStore
from .config import LinkMode
from .core import FileEntry
from .utils import normalize_path

logger = logging.getLogger(__name__)


def _parent_dirs(paths) -> Set[str]:
    dirs = set()
    for path in paths:
        parts = path.split("/")[:-1]
        for i in range(1, len(parts) + 1):
            dirs.add("/".join(parts[:i]))
    return dirs


def _remove_strays(dest: Path, files: Set[str], dirs: Set[str]) -> int:
    """Remove everything under dest that is not part of the tree."""
    removed = 0
    for dirpath, dirnames, filenames in os.walk(dest, topdown=True):
        base = Path(dirpath)
        rel_base = base.relative_to(dest).as_posix()
        prefix = "" if rel_base == "." else rel_base + "/"

        keep_dirs = []
        for name in dirnames:
            rel = prefix + name
            full = base / name
            if rel in dirs and not full.is_symlink():
                keep_dirs.append(name)
            elif full.is_symlink():
                full.unlink()
                removed += 1
            else:
                shutil.rmtree(full)
                removed += 1
        dirnames[:] = keep_dirs

        for name in filenames:
            if prefix + name not in files:
                (base / name).unlink()
                removed += 1
    return removed


def _prune_empty_dirs(dest: Path, dirs: Set[str]) -> None:
    for dirpath, dirnames, filenames in os.walk(dest, topdown=False):
        path = Path(dirpath)
        if path == dest:
            continue
        if path.relative_to(dest).as_posix() not in dirs and not any(path.iterdir()):
            path.rmdir()


def commit_tree(
    tree: Mapping[str, FileEntry],
    store: BlobStore,
    dest: Path,
    mode: Optional[LinkMode] = None,
) -> Path:
    """Make ``dest`` mirror ``tree``.

    Args:
        tree: Path -> entry mapping to render
        store: Blob store holding every entry's content
        dest: Destination directory (created if missing)
        mode: Link mode override (defaults to the store's)

    Returns:
        The destination directory

    Raises:
        FileNotFoundError: If an entry's blob is missing from the store
        OSError: If directories or links cannot be created
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)

    files = {normalize_path(p) for p in tree}
    dirs = _parent_dirs(files)

    removed = _remove_strays(dest, files, dirs)

    linked = 0
    for path in sorted(tree):
        entry = tree[path]
        target = dest / normalize_path(path)
        if store.is_linked(entry.content_id, target):
            continue
        store.link_into(entry.content_id, target, mode=mode)
        linked += 1

    _prune_empty_dirs(dest, dirs)

    logger.debug(
        "Committed %d files to %s (%d linked, %d stray entries removed)",
        len(tree), dest, linked, removed,
    )
    return dest
