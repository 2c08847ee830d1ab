"""Constants for fileset."""

APP_NAME = "fileset"

# Environment variables
CONFIG_ENV_VAR = "FILESET_CONFIG"
LINK_MODE_ENV_VAR = "FILESET_LINK_MODE"
LOCK_TIMEOUT_ENV_VAR = "FILESET_LOCK_TIMEOUT"
TEMP_ROOT_ENV_VAR = "FILESET_TEMP_ROOT"
READONLY_BLOBS_ENV_VAR = "FILESET_READONLY_BLOBS"

# Configuration file (inside the platform config dir)
CONFIG_FILE = "config.yaml"

# Temp directory prefixes
BLOB_DIR_PREFIX = "fileset-blob-"
SCRATCH_DIR_PREFIX = "fileset-scratch-"
CACHE_DIR_PREFIX = "fileset-cache-"
TMPDIR_PREFIX = "fileset-tmp-"

# Transient names inside blob/scratch/cache directories
BLOB_TMP_PREFIX = ".blob-"
MERGE_TMP_PREFIX = "merge-"
STAGING_PREFIX = ".staging-"
LOCK_SUFFIX = ".lock"
LINK_TMP_SUFFIX = ".tmp"

# Defaults
DEFAULT_LOCK_TIMEOUT = 300.0
HASH_CHUNK_SIZE = 8192
READONLY_MODE = 0o444
WRITABLE_MODE = 0o644
