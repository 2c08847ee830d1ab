"""Tracked temporary directories that are removed when the process exits."""

import atexit
import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import List, Optional

from .constants import TMPDIR_PREFIX

logger = logging.getLogger(__name__)


class TempDirRegistry:
    """Hands out fresh empty directories and removes them at interpreter exit.

    Every directory created through :meth:`tmpdir` is tracked; :meth:`release`
    removes one early and :meth:`cleanup` removes everything still tracked.
    The atexit hook is registered on first use.
    """

    def __init__(self, root: Optional[Path] = None):
        """
        Args:
            root: Parent directory for new directories (None = system temp)
        """
        self.root = Path(root) if root else None
        self._dirs: List[Path] = []
        self._lock = threading.Lock()
        self._hooked = False

    def tmpdir(self, prefix: str = TMPDIR_PREFIX) -> Path:
        """Create and track a new empty directory."""
        with self._lock:
            if self.root is not None:
                self.root.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=prefix, dir=self.root))
            self._dirs.append(path)
            if not self._hooked:
                atexit.register(self.cleanup)
                self._hooked = True
        logger.debug("Allocated temp dir %s", path)
        return path

    def release(self, path: Path) -> None:
        """Remove a tracked directory now instead of at exit."""
        path = Path(path)
        with self._lock:
            if path in self._dirs:
                self._dirs.remove(path)
        _remove_tree(path)

    def cleanup(self) -> None:
        """Remove every directory still tracked."""
        with self._lock:
            dirs, self._dirs = self._dirs, []
        for path in reversed(dirs):
            _remove_tree(path)

    @property
    def tracked(self) -> List[Path]:
        with self._lock:
            return list(self._dirs)


def _remove_tree(path: Path) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
        logger.debug("Removed temp dir %s", path)
    except OSError as e:
        logger.debug("Could not remove temp dir %s: %s", path, e)


_default_registry = TempDirRegistry()


def default_registry() -> TempDirRegistry:
    """The process-wide registry used when no other one is supplied."""
    return _default_registry


def tmpdir(prefix: str = TMPDIR_PREFIX) -> Path:
    """Return a new empty directory, removed when the process exits."""
    return _default_registry.tmpdir(prefix=prefix)
