"""Add engine: fold a directory's files into a tree."""

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from .blobstore import BlobStore
from .constants import MERGE_TMP_PREFIX
from .core import FileEntry
from .errors import MergeError
from .patterns import MergeFunction, MergerTable, PathSelector
from .utils import mtime_millis, now_millis

logger = logging.getLogger(__name__)


def _raise(err: OSError) -> None:
    raise err


def iter_source_files(root: Path) -> Iterator[Tuple[str, Path]]:
    """Yield (relative POSIX path, absolute path) for every regular file.

    Files are yielded sorted by relative path. Symlinks to files are followed,
    symlinked directories are not descended into.

    Raises:
        FileNotFoundError: If root does not exist
        NotADirectoryError: If root is not a directory
        OSError: If a directory cannot be listed
    """
    root = Path(root)
    if not root.exists():
        raise FileNotFoundError(f"Source directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    found = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        for name in filenames:
            path = Path(dirpath) / name
            if not path.is_file():
                continue  # sockets, fifos, broken symlinks
            found.append((path.relative_to(root).as_posix(), path))

    # os.walk lists a directory's files before its subdirectories
    yield from sorted(found)


def run_merger(
    fn: MergeFunction,
    relpath: str,
    existing: FileEntry,
    new_content_id: str,
    store: BlobStore,
    scratch_dir: Path,
) -> str:
    """Run a merge function into a scratch file and register the result.

    Returns:
        Content id of the merged output

    Raises:
        MergeError: If the merge function raises
    """
    scratch_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        prefix=MERGE_TMP_PREFIX,
        dir=str(scratch_dir),
        delete=False
    ) as out:
        outpath = Path(out.name)
        try:
            with store.open(existing.content_id) as old, store.open(new_content_id) as new:
                fn(old, new, out)
        except Exception as e:
            out.close()
            outpath.unlink(missing_ok=True)
            raise MergeError(relpath) from e

    try:
        return store.put(outpath)
    finally:
        with contextlib.suppress(OSError):
            outpath.unlink()


def add_directory(
    tree: Mapping[str, FileEntry],
    source_dir: Path,
    store: BlobStore,
    scratch_dir: Path,
    selector: Optional[PathSelector] = None,
    mergers: Optional[MergerTable] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> Dict[str, FileEntry]:
    """Return a new tree with the files under ``source_dir`` added.

    A path not yet in ``tree`` is inserted. For a path that is, the first
    merger whose pattern matches resolves the collision; without one the new
    file replaces the old entry. ``tree`` itself is never modified, so a
    failure part way through leaves the caller's tree as it was.
    """
    selector = selector or PathSelector()
    mergers = mergers or MergerTable()
    meta = dict(meta or {})
    result = dict(tree)
    added = merged = 0

    for relpath, path in iter_source_files(source_dir):
        if not selector.selects(relpath):
            continue

        stat = path.stat()
        content_id = store.put(path)
        existing = result.get(relpath)
        fn = mergers.find(relpath) if existing is not None else None

        if fn is None:
            entry = FileEntry(
                path=relpath,
                content_id=content_id,
                mtime=mtime_millis(stat),
                size=stat.st_size,
                meta=meta,
            )
            added += 1
        else:
            merged_id = run_merger(fn, relpath, existing, content_id, store, scratch_dir)
            entry = FileEntry(
                path=relpath,
                content_id=merged_id,
                mtime=now_millis(),
                size=store.size(merged_id),
                meta={**existing.meta, **meta},
            )
            merged += 1
            logger.debug("Merged %s into existing entry", relpath)

        result[relpath] = entry

    logger.debug("Added %d files (%d merged) from %s", added, merged, source_dir)
    return result
