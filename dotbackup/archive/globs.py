# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Glob Resolver - Expand glob patterns to regular files.

Patterns support recursive ``**`` segments and a leading ``~``. Matches
are returned as absolute paths; directories, symlinks and special files
are skipped.
"""

import glob
import os
import stat
from dataclasses import dataclass
from typing import Iterable, Iterator, List

import structlog

from dotbackup.exceptions import GlobError

logger = structlog.get_logger()


@dataclass(frozen=True)
class FileEntry:
    """Snapshot of a matched file's metadata."""

    path: str
    size: int
    mode: int
    mtime: float


def _validate_pattern(pattern: str) -> None:
    """
    Reject patterns glob would silently misinterpret.

    Raises:
        GlobError: If the pattern is empty, contains NUL, or has an
            unterminated character class
    """
    if not isinstance(pattern, str) or not pattern:
        raise GlobError("Glob pattern must be a non-empty string", details={"pattern": pattern})

    if "\x00" in pattern:
        raise GlobError("Glob pattern contains a NUL byte", details={"pattern": pattern})

    i = 0
    n = len(pattern)
    while i < n:
        if pattern[i] == "[":
            # fnmatch rules: a leading '!' or ']' belongs to the class
            j = i + 1
            if j < n and pattern[j] == "!":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                if pattern[j] == os.sep:
                    break
                j += 1
            if j >= n or pattern[j] != "]":
                raise GlobError(
                    f"Unterminated character class in glob pattern: {pattern}",
                    details={"pattern": pattern, "position": i},
                )
            i = j
        i += 1


def _is_regular_file(path: str) -> bool:
    try:
        return stat.S_ISREG(os.lstat(path).st_mode)
    except OSError:
        # Vanished between glob and stat
        return False


def _expand(pattern: str) -> List[str]:
    _validate_pattern(pattern)
    expanded = os.path.expanduser(pattern)
    matches = glob.glob(expanded, recursive=True, include_hidden=True)
    return sorted(os.path.abspath(m) for m in matches)


def resolve_globs(patterns: Iterable[str]) -> List[str]:
    """
    Resolve glob patterns to absolute paths of regular files.

    Patterns are processed in the given order and the matches of each
    pattern are sorted, so the result is deterministic. A file matched
    by several patterns appears once per match.

    Args:
        patterns: Glob patterns, e.g. ``["~/.bashrc", "~/.config/git/**"]``

    Returns:
        Absolute paths of matched regular files

    Raises:
        GlobError: If a pattern is malformed
    """
    resolved: List[str] = []

    for pattern in patterns:
        logger.debug("glob_pattern_processing", pattern=pattern)
        matched = 0
        for path in _expand(pattern):
            if not _is_regular_file(path):
                continue
            resolved.append(path)
            matched += 1
        logger.debug("glob_pattern_resolved", pattern=pattern, files=matched)

    return resolved


def iter_file_entries(patterns: Iterable[str]) -> Iterator[FileEntry]:
    """
    Yield metadata for every file the patterns resolve to.

    Files that disappear between resolution and stat are skipped.
    """
    for path in resolve_globs(patterns):
        try:
            st = os.stat(path, follow_symlinks=False)
        except FileNotFoundError:
            continue
        yield FileEntry(
            path=path,
            size=st.st_size,
            mode=st.st_mode,
            mtime=st.st_mtime,
        )
