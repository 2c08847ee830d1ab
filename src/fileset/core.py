"""Core data models for fileset."""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============= File Entries =============

class FileEntry(BaseModel):
    """A single file in a fileset's tree.

    Identity is the content id; ``mtime`` and ``meta`` ride along but never
    take part in content comparisons.
    """

    model_config = ConfigDict(frozen=True)

    path: str           # normalized POSIX path, relative to the fileset root
    content_id: str     # sha256 hex, also the blob name
    mtime: int          # milliseconds since epoch
    size: int = 0
    meta: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("meta")
    @classmethod
    def freeze_meta(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        # Entries are shared between filesets, so meta must not be editable
        return MappingProxyType(dict(value))

    @property
    def hash(self) -> str:
        """Content digest reported to callers (same as the blob key)."""
        return self.content_id


# ============= Change Detection =============

class ChangeType(str, Enum):
    """How a path differs between two filesets."""

    UNCHANGED = "unchanged"
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


class FileChange(BaseModel):
    """Classification of a single path."""

    path: str
    change_type: ChangeType
    before: Optional[FileEntry] = None
    after: Optional[FileEntry] = None

    @property
    def entry(self) -> FileEntry:
        """The entry that represents this path in a diff result.

        That is the ``after`` state, except for removed paths.
        """
        return self.after if self.after is not None else self.before


class DiffResult(BaseModel):
    """Result of comparing two trees; one change per path in their union."""

    changes: List[FileChange]

    @property
    def summary(self) -> Dict[ChangeType, int]:
        """Get summary counts by change type."""
        counts = {}
        for change in self.changes:
            counts[change.change_type] = counts.get(change.change_type, 0) + 1
        return counts

    @property
    def has_changes(self) -> bool:
        return any(c.change_type != ChangeType.UNCHANGED for c in self.changes)

    def paths(self, *change_types: ChangeType) -> List[str]:
        """Paths with any of the given change types, in path order."""
        return [c.path for c in self.changes if c.change_type in change_types]

    def tree(self, *change_types: ChangeType) -> Dict[str, FileEntry]:
        """Path -> representative entry for the given change types."""
        return {
            c.path: c.entry
            for c in self.changes
            if c.change_type in change_types
        }
