"""Keyed directory cache for expensive file-producing functions.

Each cache entry is a subdirectory ``<cache_dir>/<cache_key>`` holding the
files a producer wrote. Entries only appear through an atomic rename of a
fully populated staging directory, so an existing entry is always complete.

Technical Details:
    1. Fast path: the entry exists, the producer is skipped
    2. Per-key lock via portalocker (``<cache_dir>/.<key>.lock``)
    3. Re-check after acquiring the lock (TOCTOU fix)
    4. Producer writes into ``<cache_dir>/.staging-<key>-*``
    5. Staging dir is renamed into place; on producer failure it is removed
       and the key stays absent so the next call retries

The lock makes the producer run at most once per key across threads and
processes on one host. On filesystems where advisory locks are not honoured
this degrades to best-effort: the loser of a rename race discards its output.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable

import portalocker

from .constants import DEFAULT_LOCK_TIMEOUT, LOCK_SUFFIX, STAGING_PREFIX
from .errors import CacheLockTimeout, ProducerError
from .utils import fsync_dir

logger = logging.getLogger(__name__)

Producer = Callable[[Path], object]


def validate_cache_key(cache_key: str) -> str:
    """Check that a cache key is usable as a single directory name.

    Raises:
        ValueError: If the key is empty, hidden, or contains path separators

    Security:
        Keys become directory names; rejecting separators and dot names
        prevents escaping the cache directory.
    """
    if not isinstance(cache_key, str) or not cache_key:
        raise ValueError(f"Invalid cache key: {cache_key!r}")
    if "/" in cache_key or "\\" in cache_key or "\x00" in cache_key:
        raise ValueError(f"Cache key must not contain path separators: {cache_key!r}")
    if cache_key.startswith("."):
        raise ValueError(f"Cache key must not start with '.': {cache_key!r}")
    return cache_key


def is_cached(cache_dir: Path, cache_key: str) -> bool:
    return (Path(cache_dir) / validate_cache_key(cache_key)).is_dir()


def ensure_cached(
    cache_dir: Path,
    cache_key: str,
    producer: Producer,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
) -> Path:
    """Ensure ``cache_dir/cache_key`` exists, running ``producer`` if needed.

    Args:
        cache_dir: Cache root (created if missing)
        cache_key: Entry name
        producer: Called with an empty staging directory to populate
        lock_timeout: Seconds to wait for a concurrent producer of the same key

    Returns:
        Path to the complete cache entry

    Raises:
        ProducerError: If the producer raises (original exception chained)
        CacheLockTimeout: If the key's lock could not be acquired in time
    """
    validate_cache_key(cache_key)
    cache_dir = Path(cache_dir)
    entry = cache_dir / cache_key

    if is_cached(cache_dir, cache_key):
        logger.debug("Cache hit: %s", entry)
        return entry

    cache_dir.mkdir(parents=True, exist_ok=True)
    lock_path = cache_dir / f".{cache_key}{LOCK_SUFFIX}"

    try:
        with portalocker.Lock(str(lock_path), "w", timeout=lock_timeout):
            if is_cached(cache_dir, cache_key):
                logger.debug("Cache hit after lock: %s", entry)
                return entry
            _produce(cache_dir, cache_key, entry, producer)
    except portalocker.LockException as e:
        raise CacheLockTimeout(cache_key, lock_timeout) from e

    return entry


def _produce(cache_dir: Path, cache_key: str, entry: Path, producer: Producer) -> None:
    staging = Path(tempfile.mkdtemp(prefix=f"{STAGING_PREFIX}{cache_key}-", dir=str(cache_dir)))
    logger.debug("Cache miss: producing %s in %s", cache_key, staging)

    try:
        producer(staging)
    except Exception as e:
        shutil.rmtree(staging, ignore_errors=True)
        raise ProducerError(cache_key) from e

    try:
        os.rename(staging, entry)
    except OSError:
        shutil.rmtree(staging, ignore_errors=True)
        if entry.is_dir():
            # Another writer promoted the same key first
            logger.debug("Cache entry %s appeared concurrently; discarded ours", entry)
            return
        raise

    fsync_dir(cache_dir)
    logger.debug("Cache promoted: %s", entry)
