"""Shared test fixtures and utilities."""

import shutil
from pathlib import Path
import pytest

from fileset import FilesetSettings, StoreContext, TempDirRegistry, fileset
from fileset.constants import (
    CONFIG_ENV_VAR,
    LINK_MODE_ENV_VAR,
    LOCK_TIMEOUT_ENV_VAR,
    READONLY_BLOBS_ENV_VAR,
    TEMP_ROOT_ENV_VAR,
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep user config files and FILESET_* variables out of tests."""
    for var in (LINK_MODE_ENV_VAR, LOCK_TIMEOUT_ENV_VAR, TEMP_ROOT_ENV_VAR, READONLY_BLOBS_ENV_VAR):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "no-such-config.yaml"))


@pytest.fixture
def registry(tmp_path):
    """Temp dir registry rooted inside tmp_path (same filesystem for hard links)."""
    reg = TempDirRegistry(tmp_path / "tmp")
    yield reg
    reg.cleanup()


@pytest.fixture
def context(registry):
    """Isolated store context with default settings."""
    ctx = StoreContext(settings=FilesetSettings(), registry=registry)
    yield ctx
    ctx.close()


@pytest.fixture
def make_fileset(context):
    """Factory fixture for empty filesets sharing the test context."""
    def _make(cache_dir=None):
        return fileset(cache_dir, context=context)
    return _make


@pytest.fixture
def new_dir(registry):
    """Factory fixture returning fresh empty directories."""
    def _new_dir():
        return registry.tmpdir()
    return _new_dir


@pytest.fixture
def write_file(tmp_path):
    """Factory fixture to write files relative to tmp_path."""
    def _write(path: str, content: str = "test content", root: Path = None):
        file_path = (root or tmp_path) / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
        return file_path
    return _write


@pytest.fixture
def assets(tmp_path):
    """Sample source tree: file1.md, file2.md, dir1/file3.md."""
    root = tmp_path / "assets"
    (root / "dir1").mkdir(parents=True)
    (root / "file1.md").write_text("# File 1\n")
    (root / "file2.md").write_text("# File 2\n")
    (root / "dir1" / "file3.md").write_text("# File 3\n")
    return root


@pytest.fixture
def copy_tree():
    """Copy a committed tree into a writable working directory.

    Committed files are read-only hard links, so only contents are copied.
    """
    def _copy(src: Path, dest: Path) -> None:
        shutil.copytree(src, dest, dirs_exist_ok=True, copy_function=shutil.copyfile)
    return _copy


@pytest.fixture
def files_under():
    """Relative POSIX path -> bytes for every file under a root."""
    def _files(root: Path) -> dict:
        return {
            p.relative_to(root).as_posix(): p.read_bytes()
            for p in sorted(root.rglob("*"))
            if p.is_file()
        }
    return _files
