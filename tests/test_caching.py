"""Tests for the keyed directory cache."""

import threading
import time
import portalocker
import pytest

from fileset import CacheLockTimeout, ProducerError
from fileset.caching import ensure_cached, is_cached, validate_cache_key


def write_output(directory):
    (directory / "out.txt").write_text("OUTPUT")


class TestCacheKeys:
    """Key validation."""

    @pytest.mark.parametrize("key", ["", ".hidden", "a/b", "a\\b", "..", "nul\x00"])
    def test_invalid_keys(self, key):
        """Keys that are not a single plain directory name are rejected."""
        with pytest.raises(ValueError):
            validate_cache_key(key)

    @pytest.mark.parametrize("key", ["aaa", "build-1.2", "sha256_abc"])
    def test_valid_keys(self, key):
        assert validate_cache_key(key) == key


class TestEnsureCached:
    """Producing and reusing cache entries."""

    def test_producer_runs_once(self, tmp_path):
        """A second call reuses the entry without calling the producer."""
        calls = []

        def producer(directory):
            calls.append(directory)
            write_output(directory)

        first = ensure_cached(tmp_path / "cache", "key", producer)
        second = ensure_cached(tmp_path / "cache", "key", producer)

        assert first == second == tmp_path / "cache" / "key"
        assert (first / "out.txt").read_text() == "OUTPUT"
        assert len(calls) == 1
        assert is_cached(tmp_path / "cache", "key")

    def test_producer_gets_empty_staging_dir(self, tmp_path):
        """The producer writes into an empty directory that is not the entry itself."""
        seen = []

        def producer(directory):
            seen.append((directory, list(directory.iterdir())))
            write_output(directory)

        entry = ensure_cached(tmp_path, "key", producer)

        staging, contents = seen[0]
        assert contents == []
        assert staging != entry
        assert not staging.exists()

    def test_failure_caches_nothing(self, tmp_path):
        """A failing producer leaves no entry and no staging dir; the next call retries."""
        def broken(directory):
            write_output(directory)
            raise RuntimeError("boom")

        with pytest.raises(ProducerError) as excinfo:
            ensure_cached(tmp_path, "key", broken)

        assert excinfo.value.cache_key == "key"
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert not is_cached(tmp_path, "key")
        assert [p for p in tmp_path.iterdir() if p.name.startswith(".staging-")] == []

        entry = ensure_cached(tmp_path, "key", write_output)
        assert (entry / "out.txt").read_text() == "OUTPUT"

    def test_concurrent_callers_produce_once(self, tmp_path):
        """Threads racing on one key run the producer exactly once."""
        calls = []
        errors = []
        results = []

        def slow_producer(directory):
            calls.append(1)
            time.sleep(0.2)
            write_output(directory)

        def worker():
            try:
                results.append(ensure_cached(tmp_path / "cache", "shared", slow_producer))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(calls) == 1
        assert len(set(results)) == 1

    def test_lock_timeout(self, tmp_path):
        """A key locked by someone else times out with CacheLockTimeout."""
        cache = tmp_path / "cache"
        cache.mkdir()
        with portalocker.Lock(str(cache / ".busy.lock"), "w", timeout=1):
            with pytest.raises(CacheLockTimeout) as excinfo:
                ensure_cached(cache, "busy", write_output, lock_timeout=0.2)

        assert excinfo.value.cache_key == "busy"
        assert not is_cached(cache, "busy")

    def test_existing_entry_skips_lock(self, tmp_path):
        """A complete entry is returned even while its lock is held."""
        cache = tmp_path / "cache"
        (cache / "ready").mkdir(parents=True)
        with portalocker.Lock(str(cache / ".ready.lock"), "w", timeout=1):
            entry = ensure_cached(cache, "ready", write_output, lock_timeout=0.1)
        assert entry == cache / "ready"


class TestAddCached:
    """FileSet.add_cached."""

    def test_add_options_pass_through(self, make_fileset, new_dir):
        """include/meta apply to the cached files."""
        def producer(directory):
            (directory / "keep.out").write_text("keep")
            (directory / "drop.log").write_text("drop")

        fs = make_fileset(new_dir()).add_cached(
            "build", producer, include=[r"\.out$"], meta={"cached": True},
        )

        assert fs.ls() == ["keep.out"]
        assert fs.entry("keep.out").meta == {"cached": True}

    def test_default_cache_dir_is_shared(self, make_fileset):
        """Filesets of one context share the process-scoped cache."""
        calls = []

        def producer(directory):
            calls.append(1)
            write_output(directory)

        make_fileset().add_cached("k", producer)
        fs = make_fileset().add_cached("k", producer)

        assert len(calls) == 1
        assert fs.ls() == ["out.txt"]

    def test_failed_producer(self, make_fileset, new_dir):
        """Producer failures surface as ProducerError."""
        def broken(directory):
            raise ValueError("nope")

        with pytest.raises(ProducerError):
            make_fileset(new_dir()).add_cached("k", broken)
