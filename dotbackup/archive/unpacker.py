# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Unpacker - Restore files from a tar stream.

Entries are read sequentially and written to the path named in their
header. What happens when a file already exists, or when writing one
entry fails, is decided by the caller's RestorePolicy.
"""

import os
import shutil
import stat
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List

import structlog
import zstandard as zstd

from dotbackup.archive.compression import decompressing_reader
from dotbackup.config import (
    DEFAULT_CHUNK_SIZE,
    Compression,
    ConflictPolicy,
    RestorePolicy,
    WriteErrorPolicy,
)
from dotbackup.exceptions import ArchiveIOError, UnsafePathError

logger = structlog.get_logger()

# Mode for parent directories created during restore (umask applies)
DIRECTORY_MODE = 0o777


@dataclass
class RestoreReport:
    """Result of unpacking an archive stream."""

    restored_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    total_bytes: int = 0
    restored_paths: List[str] = field(default_factory=list)
    skipped_paths: List[str] = field(default_factory=list)
    failed_paths: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def resolve_target(name: str, root: Path | None) -> str:
    """
    Derive the filesystem path for an archive entry.

    Without a root the header name is used verbatim. With a root,
    relative names are joined to it and the resolved path (symlinks
    followed) must stay inside it.

    Raises:
        UnsafePathError: If the entry escapes the root
    """
    if root is None:
        return name

    target = name if os.path.isabs(name) else os.path.join(root, name)
    root_resolved = root.resolve()
    if not Path(target).resolve().is_relative_to(root_resolved):
        raise UnsafePathError(
            f"Archive entry escapes restore root: {name}",
            details={"path": name, "root": str(root_resolved)},
        )
    return target


def _open_flags(conflict: ConflictPolicy) -> int:
    if conflict is ConflictPolicy.SKIP_EXISTING:
        # Create new file or fail if it exists
        return os.O_WRONLY | os.O_CREAT | os.O_EXCL
    # Create new or truncate existing file
    return os.O_WRONLY | os.O_CREAT | os.O_TRUNC


def write_entry(
    reader: BinaryIO,
    path: str,
    mode: int,
    conflict: ConflictPolicy,
    mtime: float | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int | None:
    """
    Write one entry's content to disk.

    Args:
        reader: Stream positioned at the entry's content
        path: Target path
        mode: Permission bits applied when the file is created
        conflict: Conflict policy
        mtime: Modification time to restore, or None to leave it
        chunk_size: Copy buffer size

    Returns:
        Bytes written, or None when skipped because the file exists

    Raises:
        OSError: On any filesystem failure
    """
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, mode=DIRECTORY_MODE, exist_ok=True)

    try:
        fd = os.open(path, _open_flags(conflict), stat.S_IMODE(mode))
    except FileExistsError:
        logger.debug("restore_entry_skipped_exists", path=path)
        return None

    with os.fdopen(fd, "wb") as f:
        shutil.copyfileobj(reader, f, chunk_size)
        written = f.tell()

    if mtime is not None:
        os.utime(path, (mtime, mtime))

    return written


def unpack(
    source: BinaryIO,
    policy: RestorePolicy | None = None,
    compression: Compression = Compression.NONE,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RestoreReport:
    """
    Restore every regular entry in an archive stream.

    Per-entry write failures follow policy.on_write_error. A corrupt
    archive stream always aborts, since no further entry can be read.

    Args:
        source: Readable binary stream (need not be seekable)
        policy: Conflict and write-error rules; defaults to RestorePolicy()
        compression: Compression the archive was written with
        chunk_size: Copy buffer size

    Returns:
        RestoreReport with restored, skipped and failed paths

    Raises:
        ArchiveIOError: On a corrupt stream, or on a write failure when
            the policy is PROPAGATE
    """
    policy = policy or RestorePolicy()
    report = RestoreReport()

    logger.info(
        "unpack_started",
        conflict=policy.conflict.value,
        on_write_error=policy.on_write_error.value,
        root=str(policy.root) if policy.root else None,
    )

    try:
        with decompressing_reader(source, compression) as stream:
            with tarfile.open(fileobj=stream, mode="r|", bufsize=chunk_size) as tar:
                for member in tar:
                    _restore_member(tar, member, policy, report, chunk_size)
    except ArchiveIOError:
        raise
    except (OSError, EOFError, tarfile.TarError, zstd.ZstdError) as e:
        raise ArchiveIOError(
            f"Failed to read archive stream: {e}",
            details={"restored": report.restored_count},
        ) from e

    logger.info(
        "unpack_complete",
        restored=report.restored_count,
        skipped=report.skipped_count,
        failed=report.failed_count,
        total_bytes=report.total_bytes,
    )

    return report


def _restore_member(
    tar: tarfile.TarFile,
    member: tarfile.TarInfo,
    policy: RestorePolicy,
    report: RestoreReport,
    chunk_size: int,
) -> None:
    if not member.isreg():
        logger.warning(
            "restore_entry_not_regular",
            path=member.name,
            type=member.type.decode("ascii", "replace"),
        )
        return

    logger.debug("restore_entry_started", path=member.name, size=member.size)

    try:
        target = resolve_target(member.name, policy.root)
        reader = tar.extractfile(member)
        written = write_entry(
            reader,
            target,
            member.mode,
            policy.conflict,
            mtime=member.mtime if policy.preserve_mtime else None,
            chunk_size=chunk_size,
        )
    except (OSError, UnsafePathError) as e:
        _handle_write_error(e, member.name, policy, report)
        return

    if written is None:
        report.skipped_count += 1
        report.skipped_paths.append(target)
        return

    report.restored_count += 1
    report.total_bytes += written
    report.restored_paths.append(target)


def _handle_write_error(
    error: Exception,
    name: str,
    policy: RestorePolicy,
    report: RestoreReport,
) -> None:
    if policy.on_write_error is WriteErrorPolicy.PROPAGATE:
        if isinstance(error, UnsafePathError):
            raise error
        raise ArchiveIOError(
            f"Failed to restore {name}: {error}",
            details={"path": name},
        ) from error

    logger.error("restore_entry_failed", path=name, error=str(error))
    report.failed_count += 1
    report.failed_paths.append(name)
    report.errors.append(f"{name}: {error}")
