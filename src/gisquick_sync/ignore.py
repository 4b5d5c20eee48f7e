"""Gitignore-style pattern matching for gisquick-sync.

Two layers decide whether a project-relative path is excluded:

1. Built-in rules, always on: editor backups (``*~``) and the project's
   ``.gisquick/`` metadata directory. Ignore-file negations cannot undo them.
2. Patterns from ``.gisquickignore`` in the project root, if the file exists.

An ignore file that exists but cannot be read or parsed raises
IgnoreFileError; it is never treated as empty.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from pathspec import GitIgnoreSpec

from .constants import BACKUP_SUFFIX, GISQUICK_DIR, IGNORE_FILE
from .errors import IgnoreFileError


logger = logging.getLogger(__name__)


def is_builtin_ignored(relpath: str) -> bool:
    """Check the always-on exclusions for a POSIX relative path."""
    if relpath.endswith(BACKUP_SUFFIX):
        return True
    return relpath.startswith(GISQUICK_DIR + "/")


def _pattern_error(pattern: str) -> Optional[str]:
    """Return why a gitignore pattern is malformed, or None if it is fine.

    pathspec quietly reads an unclosed ``[`` as a literal, while git's
    wildmatch aborts on it, so bracket expressions are checked here.
    """
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\":
            if i + 1 >= n:
                return "trailing backslash escapes nothing"
            i += 2
            continue
        if c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            # "]" right after the opening bracket is a literal member
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                if pattern.startswith("[:", j):
                    # "[:alpha:]" class; its "]" does not close the set
                    end = pattern.find(":]", j + 2)
                    if end != -1:
                        j = end + 2
                        continue
                if pattern[j] == "\\":
                    j += 1
                j += 1
            if j >= n:
                return "unterminated bracket expression"
            i = j + 1
            continue
        i += 1
    return None


def parse_ignore_lines(lines: Iterable[str], source: str = IGNORE_FILE) -> List[str]:
    """Validate ignore file lines and return the effective patterns.

    Blank lines and comments are dropped. Trailing spaces are stripped
    unless escaped with a backslash.

    Raises:
        IgnoreFileError: On the first malformed pattern
    """
    patterns = []
    for lineno, raw in enumerate(lines, start=1):
        text = raw.rstrip("\r\n")
        pattern = text if text.endswith("\\ ") else text.rstrip()
        if not pattern.strip() or pattern.startswith("#"):
            continue
        reason = _pattern_error(pattern)
        if reason:
            raise IgnoreFileError(source, f"{reason} in pattern {pattern!r}", line=lineno)
        patterns.append(pattern)
    return patterns


def read_ignore_file(root: Path) -> Optional[Tuple[Path, List[str]]]:
    """Read ``.gisquickignore`` from a project root.

    Returns:
        (ignore file path, patterns), or None if the file does not exist

    Raises:
        IgnoreFileError: If the file exists but cannot be read or parsed
    """
    ignore_file = root / IGNORE_FILE
    try:
        content = ignore_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as e:
        raise IgnoreFileError(ignore_file, f"not valid UTF-8 ({e.reason})") from e
    except OSError as e:
        raise IgnoreFileError(ignore_file, f"cannot read: {e.strerror or e}") from e
    return ignore_file, parse_ignore_lines(content.splitlines(), source=str(ignore_file))


class IgnoreSpec:
    """Decides which project-relative paths are left out of a snapshot."""

    def __init__(self, root: Path, patterns: Iterable[str] = (), source: Optional[Path] = None):
        """Initialize ignore spec from already validated patterns.

        Args:
            root: Project root directory
            patterns: Gitignore patterns (on top of the built-in rules)
            source: File the patterns were read from, for error messages
        """
        self.root = root
        self.source = source
        self.patterns = list(patterns)
        try:
            self.spec = GitIgnoreSpec.from_lines(self.patterns)
        except ValueError as e:
            # GitWildMatchPatternError is a ValueError
            raise IgnoreFileError(source or IGNORE_FILE, str(e)) from e

    @classmethod
    def load(cls, root: Path) -> "IgnoreSpec":
        """Build the ignore spec for a project root.

        Raises:
            IgnoreFileError: If ``.gisquickignore`` exists but is unusable
        """
        loaded = read_ignore_file(root)
        if loaded is None:
            logger.debug("No %s in %s, using built-in rules only", IGNORE_FILE, root)
            return cls(root)
        source, patterns = loaded
        logger.debug("Loaded %d ignore patterns from %s", len(patterns), source)
        return cls(root, patterns, source=source)

    def is_ignored(self, relpath: str) -> bool:
        """Check if a project-relative POSIX path should be ignored.

        Args:
            relpath: Project-relative path in POSIX format (forward slashes)

        Returns:
            True if a built-in rule or an ignore pattern excludes the path
        """
        if is_builtin_ignored(relpath):
            return True
        return self.spec.match_file(relpath)

    def should_traverse(self, dirpath: str) -> bool:
        """Check if a directory should be descended into during a walk.

        Only the metadata directory is pruned. A pattern-ignored directory
        is still walked since a later negation may re-include files in it.

        Args:
            dirpath: Project-relative directory path in POSIX format
        """
        dirpath = dirpath.rstrip("/")
        return not (dirpath == GISQUICK_DIR or dirpath.startswith(GISQUICK_DIR + "/"))

    def __call__(self, relpath: str) -> bool:
        return self.is_ignored(relpath)
