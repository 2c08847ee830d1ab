"""Immutable filesets.

A FileSet pairs a path -> FileEntry tree with the shared storage handles of
the StoreContext it came from. Every operation except ``commit`` returns a
new FileSet and leaves the receiver untouched; unchanged entries are shared
between the old and new values.

Example:
    >>> import fileset
    >>> fs = fileset.fileset().add("assets", meta={"input": True})
    >>> fs = fs.remove("dir1/file3.md")
    >>> fs.commit("build/out")
"""

import contextlib
from pathlib import Path
from types import MappingProxyType
from typing import Any, BinaryIO, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from .adding import add_directory
from .blobstore import BlobStore
from .caching import Producer, ensure_cached
from .commit import commit_tree
from .context import StoreContext, get_default_context
from .core import ChangeType, DiffResult, FileEntry
from .diffing import compute_diff
from .errors import PathNotFoundError
from .hashing import compute_tree_digest
from .merging import merge_trees
from .patterns import MergerSpec, MergerTable, Pattern, PathSelector
from .utils import normalize_path


class FileSet:
    """Immutable, content-addressed collection of files."""

    __slots__ = ("_tree", "_context", "_cache_dir")

    def __init__(
        self,
        tree: Optional[Mapping[str, FileEntry]] = None,
        context: Optional[StoreContext] = None,
        cache_dir: Optional[Path] = None,
    ):
        """
        Args:
            tree: Initial path -> entry mapping (copied)
            context: Storage handles; the process-wide context when None
            cache_dir: Cache root for add_cached; the context's default when None
        """
        self._context = context or get_default_context()
        self._tree = MappingProxyType(dict(tree or {}))
        self._cache_dir = Path(cache_dir) if cache_dir is not None else None

    def _with_tree(self, tree: Dict[str, FileEntry]) -> "FileSet":
        derived = FileSet.__new__(FileSet)
        derived._context = self._context
        derived._cache_dir = self._cache_dir
        derived._tree = MappingProxyType(tree)
        return derived

    # ----- storage handles -----

    @property
    def tree(self) -> Mapping[str, FileEntry]:
        """Read-only path -> entry mapping."""
        return self._tree

    @property
    def context(self) -> StoreContext:
        return self._context

    @property
    def store(self) -> BlobStore:
        return self._context.store

    @property
    def blob_dir(self) -> Path:
        return self._context.blob_dir

    @property
    def scratch_dir(self) -> Path:
        return self._context.scratch_dir

    @property
    def cache_dir(self) -> Path:
        if self._cache_dir is not None:
            return self._cache_dir
        return self._context.default_cache_dir

    # ----- building -----

    def add(
        self,
        source_dir: Path,
        *,
        include: Optional[Iterable[Pattern]] = None,
        exclude: Optional[Iterable[Pattern]] = None,
        ignore: Iterable[str] = (),
        mergers: Optional[MergerSpec] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> "FileSet":
        """Return a fileset with all the files under ``source_dir`` added.

        Args:
            include: Only add files whose path matches one of these regexes
            exclude: Skip files whose path matches one of these regexes
                (takes priority over include)
            ignore: Gitignore-style patterns to skip, like exclude
            mergers: Ordered (regex, function) pairs, or a dict in insertion
                order. When an added path already exists and matches a
                pattern, the first matching function computes the resulting
                contents from (existing stream, new stream, output stream).
                Without a match the new file replaces the old one.
            meta: Metadata attached to every added file

        Raises:
            FileNotFoundError: If source_dir does not exist
            MergeError: If a merge function raises
        """
        tree = add_directory(
            self._tree,
            Path(source_dir),
            self.store,
            self.scratch_dir,
            selector=PathSelector(include=include, exclude=exclude, ignore=ignore),
            mergers=MergerTable(mergers),
            meta=meta,
        )
        return self._with_tree(tree)

    def add_cached(
        self,
        cache_key: str,
        producer: Producer,
        **add_options: Any,
    ) -> "FileSet":
        """Like add, but takes a cache key and a producer instead of a directory.

        If the key is not in the cache, ``producer`` is called with an empty
        directory to fill; its output is then kept under the key. Either way
        the cached files are added to the fileset. Keyword options are the
        same as for :meth:`add`.

        Raises:
            ProducerError: If the producer raises; nothing is cached
        """
        entry_dir = ensure_cached(
            self.cache_dir,
            cache_key,
            producer,
            lock_timeout=self._context.settings.lock_timeout,
        )
        return self.add(entry_dir, **add_options)

    def filter(self, predicate: Callable[[FileEntry], bool]) -> "FileSet":
        """Return a fileset with only the entries for which predicate is true."""
        return self._with_tree({p: e for p, e in self._tree.items() if predicate(e)})

    def filter_by_meta(self, predicate: Callable[[Mapping[str, Any]], bool]) -> "FileSet":
        """Like filter, but the predicate receives each entry's metadata."""
        return self.filter(lambda entry: predicate(entry.meta))

    def remove(self, *paths: str) -> "FileSet":
        """Return a fileset with the given paths removed (absent paths are ignored)."""
        doomed = set()
        for path in paths:
            with contextlib.suppress(ValueError):
                doomed.add(normalize_path(path))
        return self.filter(lambda entry: entry.path not in doomed)

    def empty(self) -> "FileSet":
        """Return an empty fileset sharing this one's storage and cache."""
        return self._with_tree({})

    def merge(self, *others: "FileSet") -> "FileSet":
        """Merge filesets left to right.

        If a path exists in more than one fileset, the entry with the newest
        timestamp is kept and a warning is logged when contents differ.
        The result keeps this fileset's storage; blobs of filesets from
        other contexts are copied into it.
        """
        tree = dict(self._tree)
        for other in others:
            self._adopt_blobs(other)
            tree = merge_trees(tree, other.tree)
        return self._with_tree(tree)

    def _adopt_blobs(self, other: "FileSet") -> None:
        if other._context is self._context:
            return
        store, source = self.store, other.store
        for entry in other._tree.values():
            if not store.has(entry.content_id):
                store.put(source.path_for(entry.content_id))

    # ----- comparing -----

    def compare(self, after: "FileSet") -> DiffResult:
        """Classify every path of self (before) and after."""
        return compute_diff(self._tree, after.tree)

    def diff(self, after: "FileSet") -> "FileSet":
        """Files of ``after`` that are new or whose content differs from self."""
        result = self.compare(after)
        return after._with_tree(result.tree(ChangeType.ADDED, ChangeType.CHANGED))

    def added(self, after: "FileSet") -> "FileSet":
        """Files present in ``after`` but not in self."""
        return after._with_tree(self.compare(after).tree(ChangeType.ADDED))

    def removed(self, after: "FileSet") -> "FileSet":
        """Files present in self but not in ``after``."""
        return self._with_tree(self.compare(after).tree(ChangeType.REMOVED))

    def changed(self, after: "FileSet") -> "FileSet":
        """Files present in both whose content differs (``after`` entries)."""
        return after._with_tree(self.compare(after).tree(ChangeType.CHANGED))

    # ----- reading -----

    def ls(self) -> List[str]:
        """Paths present in the fileset, sorted."""
        return sorted(self._tree)

    def entry(self, path: str) -> FileEntry:
        """Entry at path.

        Raises:
            PathNotFoundError: If the path is not in the fileset
        """
        try:
            key = normalize_path(path)
        except ValueError:
            # Empty or escaping paths can never be in the tree
            raise PathNotFoundError(str(path)) from None
        try:
            return self._tree[key]
        except KeyError:
            raise PathNotFoundError(key) from None

    def hash(self, path: str) -> str:
        """SHA256 hex digest of the content at path."""
        return self.entry(path).hash

    def timestamp(self, path: str) -> int:
        """Last-modified time (milliseconds since epoch) of the file at path."""
        return self.entry(path).mtime

    def content(self, path: str) -> BinaryIO:
        """Open the content of the file at path for reading."""
        return self.store.open(self.entry(path).content_id)

    def digest(self) -> str:
        """Composite digest of the path -> content mapping."""
        return compute_tree_digest((p, e.content_id) for p, e in self._tree.items())

    # ----- materializing -----

    def commit(self, dest: Path) -> Path:
        """Make ``dest`` mirror this fileset.

        The emitted files are hard links into the blob store (copies where
        linking is impossible) and must be treated as immutable. Files in
        ``dest`` that are not part of the fileset are removed.
        """
        return commit_tree(self._tree, self.store, Path(dest))

    # ----- python protocol -----

    def __len__(self) -> int:
        return len(self._tree)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ls())

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize_path(path) in self._tree
        except ValueError:
            return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileSet):
            return NotImplemented
        return (
            dict(self._tree) == dict(other._tree)
            and self._context is other._context
            and self.cache_dir == other.cache_dir
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"FileSet({len(self._tree)} files, cache_dir={self._cache_dir})"


def fileset(cache_dir: Optional[Path] = None, *, context: Optional[StoreContext] = None) -> FileSet:
    """Create a new, empty fileset.

    Optionally takes a directory to use as a persistent cache; otherwise
    caches live in a process-scoped temporary directory.
    """
    return FileSet(context=context, cache_dir=cache_dir)


def merge(*filesets: FileSet) -> FileSet:
    """Merge filesets; the result keeps the first fileset's storage handles."""
    if not filesets:
        raise ValueError("merge() needs at least one fileset")
    first, *rest = filesets
    return first.merge(*rest)


def diff(before: FileSet, after: FileSet) -> FileSet:
    return before.diff(after)


def added(before: FileSet, after: FileSet) -> FileSet:
    return before.added(after)


def removed(before: FileSet, after: FileSet) -> FileSet:
    return before.removed(after)


def changed(before: FileSet, after: FileSet) -> FileSet:
    return before.changed(after)
