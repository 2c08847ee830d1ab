"""Store context owning the process-scoped blob, scratch and cache directories."""

import logging
import threading
from pathlib import Path
from typing import Optional

from .blobstore import BlobStore
from .config import FilesetSettings, load_settings
from .constants import BLOB_DIR_PREFIX, CACHE_DIR_PREFIX, SCRATCH_DIR_PREFIX
from .tempdirs import TempDirRegistry, default_registry

logger = logging.getLogger(__name__)


class StoreContext:
    """Shared storage handles for filesets.

    The blob store, the scratch area used for merge output and the default
    cache directory are created lazily on first access and live until
    :meth:`close` (or process exit, through the temp dir registry). Filesets
    created from the same context share all three.
    """

    def __init__(
        self,
        settings: Optional[FilesetSettings] = None,
        registry: Optional[TempDirRegistry] = None,
    ):
        """Initialize context without touching the filesystem.

        Args:
            settings: Settings to use; loaded from config/env when None
            registry: Temp dir registry; derived from settings.temp_root when None
        """
        self.settings = settings if settings is not None else load_settings()
        if registry is None:
            if self.settings.temp_root is not None:
                registry = TempDirRegistry(self.settings.temp_root)
            else:
                registry = default_registry()
        self.registry = registry
        self._lock = threading.Lock()
        self._blob_dir: Optional[Path] = None
        self._scratch_dir: Optional[Path] = None
        self._default_cache_dir: Optional[Path] = None
        self._store: Optional[BlobStore] = None

    @property
    def blob_dir(self) -> Path:
        return self.store.root

    @property
    def store(self) -> BlobStore:
        """The shared blob store (created on first use)."""
        with self._lock:
            if self._store is None:
                self._blob_dir = self.registry.tmpdir(prefix=BLOB_DIR_PREFIX)
                self._store = BlobStore(
                    self._blob_dir,
                    link_mode=self.settings.link_mode,
                    readonly=self.settings.readonly_blobs,
                )
                logger.debug("Blob store at %s", self._blob_dir)
            return self._store

    @property
    def scratch_dir(self) -> Path:
        with self._lock:
            if self._scratch_dir is None:
                self._scratch_dir = self.registry.tmpdir(prefix=SCRATCH_DIR_PREFIX)
            return self._scratch_dir

    @property
    def default_cache_dir(self) -> Path:
        """Process-scoped cache directory for filesets created without one."""
        with self._lock:
            if self._default_cache_dir is None:
                self._default_cache_dir = self.registry.tmpdir(prefix=CACHE_DIR_PREFIX)
            return self._default_cache_dir

    def close(self) -> None:
        """Remove the directories this context created.

        Filesets created from this context must not be used afterwards.
        """
        with self._lock:
            dirs = [self._blob_dir, self._scratch_dir, self._default_cache_dir]
            self._blob_dir = self._scratch_dir = self._default_cache_dir = None
            self._store = None
        for path in dirs:
            if path is not None:
                self.registry.release(path)

    def __enter__(self) -> "StoreContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


_default_context: Optional[StoreContext] = None
_default_lock = threading.Lock()


def get_default_context() -> StoreContext:
    """Return the process-wide context, creating it on first call."""
    global _default_context
    with _default_lock:
        if _default_context is None:
            _default_context = StoreContext()
        return _default_context


def reset_default_context() -> None:
    """Close and forget the process-wide context."""
    global _default_context
    with _default_lock:
        ctx, _default_context = _default_context, None
    if ctx is not None:
        ctx.close()
