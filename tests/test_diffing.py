"""Tests for diff computation."""

import pytest

from fileset.core import ChangeType, FileEntry
from fileset.diffing import classify, compute_diff

A = "a" * 64
B = "b" * 64


def _entry(path, content_id=A, mtime=1000, meta=None):
    return FileEntry(path=path, content_id=content_id, mtime=mtime, meta=meta or {})


class TestClassify:
    """Single path classification."""

    @pytest.mark.parametrize("before,after,expected", [
        (None, _entry("x"), ChangeType.ADDED),
        (_entry("x"), None, ChangeType.REMOVED),
        (_entry("x", A), _entry("x", B), ChangeType.CHANGED),
        (_entry("x", A), _entry("x", A), ChangeType.UNCHANGED),
    ])
    def test_classification(self, before, after, expected):
        assert classify(before, after) == expected

    def test_timestamp_and_meta_ignored(self):
        """Only content identity matters."""
        before = _entry("x", A, mtime=1, meta={"a": 1})
        after = _entry("x", A, mtime=99, meta={"b": 2})
        assert classify(before, after) == ChangeType.UNCHANGED


class TestComputeDiff:
    """Whole-tree diffs."""

    @pytest.fixture
    def result(self):
        before = {
            "same.txt": _entry("same.txt"),
            "gone.txt": _entry("gone.txt"),
            "edit.txt": _entry("edit.txt", A),
        }
        after = {
            "same.txt": _entry("same.txt"),
            "edit.txt": _entry("edit.txt", B, mtime=2000),
            "new.txt": _entry("new.txt", B),
        }
        return compute_diff(before, after)

    def test_sorted_union(self, result):
        """One change per path in the union, in path order."""
        assert [c.path for c in result.changes] == ["edit.txt", "gone.txt", "new.txt", "same.txt"]

    def test_summary(self, result):
        assert result.summary == {
            ChangeType.CHANGED: 1,
            ChangeType.REMOVED: 1,
            ChangeType.ADDED: 1,
            ChangeType.UNCHANGED: 1,
        }
        assert result.has_changes

    def test_paths_by_type(self, result):
        assert result.paths(ChangeType.ADDED, ChangeType.CHANGED) == ["edit.txt", "new.txt"]
        assert result.paths(ChangeType.REMOVED) == ["gone.txt"]

    def test_tree_uses_after_entries(self, result):
        """Changed paths are represented by their after entry, removed ones by before."""
        tree = result.tree(ChangeType.CHANGED, ChangeType.REMOVED)
        assert tree["edit.txt"].content_id == B
        assert tree["edit.txt"].mtime == 2000
        assert tree["gone.txt"].content_id == A

    def test_empty_trees(self):
        result = compute_diff({}, {})
        assert result.changes == []
        assert not result.has_changes


class TestFileSetDiffs:
    """Diff results carry the right storage handles."""

    def test_results_keep_side_handles(self, make_fileset, assets, new_dir):
        """diff/added/changed take after's cache dir, removed takes before's."""
        before = make_fileset(new_dir()).add(assets)
        after = make_fileset(new_dir()).add(assets).remove("file1.md")

        assert before.diff(after).cache_dir == after.cache_dir
        assert before.added(after).cache_dir == after.cache_dir
        assert before.changed(after).cache_dir == after.cache_dir
        assert before.removed(after).cache_dir == before.cache_dir
        assert before.removed(after).ls() == ["file1.md"]

    def test_touch_is_not_a_change(self, make_fileset, assets):
        """Re-adding an untouched tree with new metadata is not a change."""
        before = make_fileset().add(assets)
        after = make_fileset().add(assets, meta={"tag": 1})
        assert before.diff(after).ls() == []
