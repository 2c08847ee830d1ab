"""Diff computation between two trees."""

from typing import Mapping, Optional

from .core import ChangeType, DiffResult, FileChange, FileEntry


def classify(before: Optional[FileEntry], after: Optional[FileEntry]) -> ChangeType:
    """Classify a path given its entry on each side (either may be None)."""
    if before is None:
        return ChangeType.ADDED
    if after is None:
        return ChangeType.REMOVED
    if before.content_id != after.content_id:
        return ChangeType.CHANGED
    return ChangeType.UNCHANGED


def compute_diff(
    before: Mapping[str, FileEntry],
    after: Mapping[str, FileEntry],
) -> DiffResult:
    """
    Compute differences between two trees.

    Args:
        before: Tree of the earlier fileset.
        after: Tree of the later fileset.

    Returns:
        DiffResult with one FileChange per path in either tree, sorted by path.

    Note:
        Only path membership and content ids are compared; metadata and
        timestamps are ignored, so touching a file or re-tagging it does not
        count as a change.
    """
    changes = []
    for path in sorted(before.keys() | after.keys()):
        before_entry = before.get(path)
        after_entry = after.get(path)
        changes.append(FileChange(
            path=path,
            change_type=classify(before_entry, after_entry),
            before=before_entry,
            after=after_entry,
        ))
    return DiffResult(changes=changes)
