"""Immutable, content-addressed file collections for build pipelines."""

from .api import FileSet, added, changed, diff, fileset, merge, removed
from .config import FilesetSettings, default_persistent_cache_dir, load_settings
from .context import StoreContext, get_default_context, reset_default_context
from .core import ChangeType, DiffResult, FileChange, FileEntry
from .errors import (
    CacheError,
    CacheLockTimeout,
    ConfigError,
    FilesetError,
    MergeError,
    PathNotFoundError,
    ProducerError,
)
from .tempdirs import TempDirRegistry, tmpdir

__version__ = "0.1.0"

__all__ = [
    "FileSet",
    "fileset",
    "merge",
    "diff",
    "added",
    "removed",
    "changed",
    "tmpdir",
    "FileEntry",
    "ChangeType",
    "FileChange",
    "DiffResult",
    "StoreContext",
    "get_default_context",
    "reset_default_context",
    "TempDirRegistry",
    "FilesetSettings",
    "load_settings",
    "default_persistent_cache_dir",
    "FilesetError",
    "PathNotFoundError",
    "MergeError",
    "CacheError",
    "ProducerError",
    "CacheLockTimeout",
    "ConfigError",
]
