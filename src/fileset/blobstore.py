"""Local content-addressed blob storage.

Blobs live in a single flat directory and are named by the SHA256 hex digest
of their bytes. A blob is written once and never modified afterwards, which
is what makes it safe to hand out hard links to it.

Technical Considerations:
- Writes go to a temp file in the blob directory and are promoted with
  os.link, which fails if the name exists. Concurrent writers of the same
  name carry identical bytes, so losing that race is a successful dedup.
- Blobs are made read-only (0o444) before promotion. Hardlinked files share
  the inode, so committed files are read-only too.
- Materialization tries a hard link first and falls back to a byte copy
  (cross-device links, filesystems without link support, link-count limits).
"""

from __future__ import annotations
import contextlib
import logging
import os
import re
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from .config import LinkMode
from .constants import BLOB_TMP_PREFIX, LINK_TMP_SUFFIX, READONLY_MODE, WRITABLE_MODE
from .hashing import compute_file_digest, copy_with_digest

logger = logging.getLogger(__name__)

_HEX64 = re.compile(r"^[0-9a-f]{64}$")


def _validate_content_id(content_id: str) -> str:
    """Check that a content id is a bare SHA256 hex digest.

    Raises:
        ValueError: If the id is malformed

    Security:
        Content ids become file names; validating the format first prevents
        path traversal.
    """
    if not isinstance(content_id, str) or not _HEX64.fullmatch(content_id):
        raise ValueError(f"Invalid content id (must be 64 hex chars): {content_id!r}")
    return content_id


class BlobStore:
    """Flat content-addressed store.

    Directory Structure:
        <root>/<sha256 hex>
        <root>/.blob-*        (transient, during put)

    Attributes:
        root: Blob directory
        link_mode: Default strategy for :meth:`link_into`
        readonly: Whether blobs are chmod'ed read-only

    Thread Safety:
        put/open/link_into are safe for concurrent use from threads and
        processes sharing the directory.
    """

    def __init__(self, root: Path, link_mode: LinkMode = "auto", readonly: bool = True):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.link_mode = link_mode
        self.readonly = readonly

    def path_for(self, content_id: str) -> Path:
        """Location of a blob (whether or not it exists).

        Raises:
            ValueError: If content id format is invalid
        """
        return self.root / _validate_content_id(content_id)

    def has(self, content_id: str) -> bool:
        try:
            return self.path_for(content_id).exists()
        except ValueError:
            return False

    def __contains__(self, content_id: str) -> bool:
        return self.has(content_id)

    def put(self, path: Path) -> str:
        """Register a file's content and return its content id.

        If a blob with the file's digest already exists nothing is written.

        Raises:
            OSError: If the file cannot be read or the blob cannot be written
        """
        path = Path(path)
        digest = compute_file_digest(path)
        if self.has(digest):
            logger.debug("Blob %s already stored (%s)", digest[:12], path)
            return digest

        with tempfile.NamedTemporaryFile(
            prefix=BLOB_TMP_PREFIX,
            dir=str(self.root),
            delete=False
        ) as tmp:
            tmppath = Path(tmp.name)
            try:
                # The copied bytes are authoritative if the source changed since hashing
                digest, size = copy_with_digest(path, tmp)
            except BaseException:
                tmp.close()
                tmppath.unlink(missing_ok=True)
                raise

        try:
            self._promote(tmppath, digest)
        finally:
            with contextlib.suppress(OSError):
                tmppath.unlink()

        logger.debug("Stored blob %s (%d bytes) from %s", digest[:12], size, path)
        return digest

    def _promote(self, tmppath: Path, digest: str) -> None:
        if self.readonly:
            os.chmod(tmppath, READONLY_MODE)
        try:
            os.link(tmppath, self.path_for(digest))
        except FileExistsError:
            # Concurrent writer got there first with identical content
            logger.debug("Blob %s created concurrently", digest[:12])
        except OSError:
            # No hard links in the blob dir itself: rename is still atomic
            os.replace(tmppath, self.path_for(digest))

    def open(self, content_id: str) -> BinaryIO:
        """Open a blob for reading.

        Raises:
            FileNotFoundError: If the blob is not in the store
        """
        src = self.path_for(content_id)
        try:
            return src.open("rb")
        except FileNotFoundError:
            raise FileNotFoundError(f"Blob not in store: {content_id}") from None

    def size(self, content_id: str) -> int:
        return self.path_for(content_id).stat().st_size

    def is_linked(self, content_id: str, dest: Path) -> bool:
        """True if ``dest`` already is the blob itself (same inode, not a symlink)."""
        try:
            src = self.path_for(content_id).stat()
            dst = os.lstat(dest)
        except OSError:
            return False
        return (src.st_dev, src.st_ino) == (dst.st_dev, dst.st_ino)

    def link_into(self, content_id: str, dest: Path, mode: Optional[LinkMode] = None) -> None:
        """Materialize a blob at ``dest``.

        Attempts strategies in order based on mode:
        - auto: hardlink → copy
        - hardlink: hardlink only (fails if not possible)
        - copy: always copy

        Both strategies go through a temp name and os.replace, so ``dest``
        either fully exists or is left untouched.

        Raises:
            FileNotFoundError: If the blob is not in the store
            OSError: If the destination cannot be created
        """
        mode = mode or self.link_mode
        if mode not in ("auto", "hardlink", "copy"):
            raise ValueError(f"Invalid link mode: {mode}")

        src = self.path_for(content_id)
        if not src.exists():
            raise FileNotFoundError(f"Blob not in store: {content_id}")

        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        if mode in ("hardlink", "auto"):
            # Random name: a sibling path derived from dest may be a tree entry
            tmp = dest.with_name(f".{dest.name}.{uuid.uuid4().hex}{LINK_TMP_SUFFIX}")
            try:
                os.link(src, tmp)
            except OSError as e:
                if mode == "hardlink":
                    raise
                logger.debug("Hard link failed for %s (%s), copying", dest, e)
            else:
                try:
                    os.replace(str(tmp), str(dest))
                except OSError:
                    with contextlib.suppress(OSError):
                        tmp.unlink()
                    raise
                logger.debug("Linked %s <- %s", dest, content_id[:12])
                return

        fd, name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=LINK_TMP_SUFFIX, dir=str(dest.parent))
        os.close(fd)
        tmp = Path(name)
        try:
            shutil.copyfile(src, tmp)
            # Copies don't share the blob's inode, so they may stay writable
            os.chmod(tmp, WRITABLE_MODE)
            os.replace(str(tmp), str(dest))
            logger.debug("Copied %s <- %s", dest, content_id[:12])
        finally:
            with contextlib.suppress(OSError):
                tmp.unlink()
