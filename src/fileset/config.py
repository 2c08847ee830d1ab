"""Settings for the blob store, cache layer and temp directories."""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

import platformdirs
import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .constants import (
    APP_NAME,
    CONFIG_ENV_VAR,
    CONFIG_FILE,
    DEFAULT_LOCK_TIMEOUT,
    LINK_MODE_ENV_VAR,
    LOCK_TIMEOUT_ENV_VAR,
    READONLY_BLOBS_ENV_VAR,
    TEMP_ROOT_ENV_VAR,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)

LinkMode = Literal["auto", "hardlink", "copy"]

_ENV_OVERRIDES = {
    "link_mode": LINK_MODE_ENV_VAR,
    "lock_timeout": LOCK_TIMEOUT_ENV_VAR,
    "temp_root": TEMP_ROOT_ENV_VAR,
    "readonly_blobs": READONLY_BLOBS_ENV_VAR,
}


class FilesetSettings(BaseModel):
    """
    Tunables for a store context.

    - link_mode: how ``commit`` materializes blobs ("auto" = hardlink, copy on failure)
    - lock_timeout: seconds to wait for another producer of the same cache key
    - temp_root: parent directory for process-scoped dirs (None = system temp)
    - readonly_blobs: chmod stored blobs 0o444 so hard links can't be edited in place
    """
    link_mode: LinkMode = "auto"
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    temp_root: Optional[Path] = None
    readonly_blobs: bool = True

    @field_validator("lock_timeout")
    @classmethod
    def validate_lock_timeout(cls, value: float) -> float:
        if value < 0:
            raise ValueError("lock_timeout must be >= 0")
        return value


def default_config_path() -> Path:
    """Platform-appropriate location of the user config file."""
    return Path(platformdirs.user_config_dir(APP_NAME)) / CONFIG_FILE


def default_persistent_cache_dir() -> Path:
    """Platform-appropriate cache directory that survives across runs.

    Pass it to ``fileset(cache_dir=...)`` to reuse producer output between
    build invocations.
    """
    return Path(platformdirs.user_cache_dir(APP_NAME)) / "cache"


def _read_config_file(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: expected a mapping", path)
        return {}
    return data


def load_settings(path: Optional[Path] = None) -> FilesetSettings:
    """Load settings from YAML and environment overrides.

    Resolution order for the file: explicit ``path`` > $FILESET_CONFIG >
    the platform config dir. A missing file means defaults. Environment
    variables override values from the file.

    Raises:
        ConfigError: If a value fails validation
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else default_config_path()

    data = _read_config_file(path) if path.exists() else {}

    for key, var in _ENV_OVERRIDES.items():
        if var in os.environ:
            data[key] = os.environ[var]

    try:
        return FilesetSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid fileset settings (from {path}): {e}") from e
