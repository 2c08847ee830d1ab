"""Hashing utilities for content addressing.

Blob names and reported file hashes are both the lowercase SHA256 hex digest
of the file bytes. A composite digest summarises a whole tree.
"""

from pathlib import Path
from typing import BinaryIO, Iterable, Tuple
import hashlib

from .constants import HASH_CHUNK_SIZE


def compute_file_digest(path: Path) -> str:
    """Compute SHA256 hash of file contents.

    Simple byte-for-byte hashing - any change invalidates the digest.

    Args:
        path: Path to file to hash

    Returns:
        64-character lowercase hex digest
    """
    with Path(path).open("rb") as f:
        return compute_stream_digest(f)


def compute_stream_digest(stream: BinaryIO) -> str:
    """Compute SHA256 hex digest of everything left in a binary stream."""
    sha256 = hashlib.sha256()
    for chunk in iter(lambda: stream.read(HASH_CHUNK_SIZE), b""):
        sha256.update(chunk)
    return sha256.hexdigest()


def copy_with_digest(src: Path, dst: BinaryIO) -> Tuple[str, int]:
    """Copy a file into an open binary stream while hashing it.

    The digest describes exactly the bytes written, even if ``src`` changes
    while it is being read.

    Returns:
        Tuple of (hex digest, number of bytes copied)
    """
    sha256 = hashlib.sha256()
    size = 0
    with Path(src).open("rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            sha256.update(chunk)
            dst.write(chunk)
            size += len(chunk)
    return sha256.hexdigest(), size


def compute_tree_digest(entries: Iterable[Tuple[str, str]]) -> str:
    """Compute a composite digest from (path, content digest) pairs.

    Uses cryptographic domain separation (null bytes) to prevent ambiguity
    between concatenated strings: ("AB", "C") and ("A", "BC") must not hash
    the same.

    Args:
        entries: (path, digest) pairs; order does not matter

    Returns:
        64-character hex tree digest (BLAKE2b)

    Example:
        >>> compute_tree_digest([("a.txt", "ab12..."), ("dir/b.txt", "cd34...")])
    """
    h = hashlib.blake2b(digest_size=32)
    h.update(b'\x00TREE\x00')

    for path, digest in sorted(entries):
        h.update(b'\x00')
        h.update(path.encode('utf-8'))
        h.update(b'\x00')
        h.update(digest.encode('utf-8'))
        h.update(b'\x00')

    return h.hexdigest()


__all__ = [
    "compute_file_digest",
    "compute_stream_digest",
    "copy_with_digest",
    "compute_tree_digest",
]
