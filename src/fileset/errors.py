"""Custom exceptions for fileset.

IO failures are reported with the built-in ``OSError`` family and malformed
identifiers with ``ValueError``; the classes here cover the failures that are
specific to filesets.
"""


class FilesetError(RuntimeError):
    """Base class for all fileset errors."""
    pass


class PathNotFoundError(FilesetError, KeyError):
    """Path is not present in the fileset's tree."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No file at path '{path}' in fileset")

    def __str__(self) -> str:
        # KeyError would repr() the message otherwise
        return self.args[0]


class MergeError(FilesetError):
    """A merge function raised while resolving a path collision."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Merge function failed for '{path}'")


# Cache Errors
class CacheError(FilesetError):
    """Base class for cache layer errors."""
    pass


class ProducerError(CacheError):
    """A cache producer raised; nothing was cached for the key."""

    def __init__(self, cache_key: str):
        self.cache_key = cache_key
        super().__init__(
            f"Producer for cache key '{cache_key}' failed. "
            f"Staged output was discarded; the next call will retry."
        )


class CacheLockTimeout(CacheError):
    """Timed out waiting for another producer of the same cache key."""

    def __init__(self, cache_key: str, timeout: float):
        self.cache_key = cache_key
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:g}s waiting for the lock on cache key '{cache_key}'"
        )


# Configuration Errors
class ConfigError(FilesetError):
    """Invalid configuration file or environment override."""
    pass
