"""Path selection and merge-function dispatch for ``add``."""

import re
from typing import BinaryIO, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from pathspec import PathSpec
from pathspec.patterns import GitWildMatchPattern

Pattern = Union[str, re.Pattern]
MergeFunction = Callable[[BinaryIO, BinaryIO, BinaryIO], object]
MergerSpec = Union[Mapping[Pattern, MergeFunction], Iterable[Tuple[Pattern, MergeFunction]]]


def compile_patterns(patterns: Optional[Iterable[Pattern]]) -> List[re.Pattern]:
    """Compile regex patterns, accepting strings or pre-compiled patterns."""
    if patterns is None:
        return []
    if isinstance(patterns, (str, re.Pattern)):
        patterns = [patterns]
    return [p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns]


class PathSelector:
    """Decides which relative paths ``add`` picks up.

    - exclude: regexes; a path matching any of them is skipped
    - ignore: gitignore-style patterns; a matching path is skipped
    - include: regexes; when non-empty, a path must match at least one

    Exclusion (either kind) takes priority over include. Regexes are
    searched anywhere in the POSIX path, so anchor them when needed.
    """

    def __init__(
        self,
        include: Optional[Iterable[Pattern]] = None,
        exclude: Optional[Iterable[Pattern]] = None,
        ignore: Iterable[str] = (),
    ):
        self.include = compile_patterns(include)
        self.exclude = compile_patterns(exclude)
        if isinstance(ignore, str):
            ignore = [ignore]
        ignore = list(ignore)
        self.ignore = PathSpec.from_lines(GitWildMatchPattern, ignore) if ignore else None

    def is_excluded(self, relpath: str) -> bool:
        if any(p.search(relpath) for p in self.exclude):
            return True
        return self.ignore is not None and self.ignore.match_file(relpath)

    def selects(self, relpath: str) -> bool:
        """Check if a relative POSIX path should be added."""
        if self.is_excluded(relpath):
            return False
        if self.include:
            return any(p.search(relpath) for p in self.include)
        return True


class MergerTable:
    """Ordered (pattern, merge function) pairs; the first match wins.

    Merge functions receive an input stream of the existing content, an input
    stream of the new content and an output stream for the result. The
    streams are closed once the function returns, so it must do all of its
    work eagerly.
    """

    def __init__(self, mergers: Optional[MergerSpec] = None):
        if mergers is None:
            pairs = []
        elif isinstance(mergers, Mapping):
            # dicts keep insertion order, which is the dispatch order
            pairs = list(mergers.items())
        else:
            pairs = list(mergers)
        self.entries: List[Tuple[re.Pattern, MergeFunction]] = []
        for pattern, fn in pairs:
            if not callable(fn):
                raise TypeError(f"Merger for pattern {pattern!r} is not callable")
            self.entries.append((compile_patterns([pattern])[0], fn))

    def find(self, relpath: str) -> Optional[MergeFunction]:
        """Return the merge function for a path, or None if no pattern matches."""
        for pattern, fn in self.entries:
            if pattern.search(relpath):
                return fn
        return None

    def __bool__(self) -> bool:
        return bool(self.entries)
