# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Packer - Serialize matched files into a tar stream.

Each regular file matched by the glob patterns becomes one archive entry
named by its absolute path. The stream is written strictly sequentially
and never seeks, so the sink can be a pipe or a socket.
"""

import os
import tarfile
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, List

import structlog

from dotbackup.archive.compression import compressing_writer
from dotbackup.archive.globs import resolve_globs
from dotbackup.config import DEFAULT_CHUNK_SIZE, Compression
from dotbackup.exceptions import ArchiveIOError, BackupCancelledError, DotBackupError

logger = structlog.get_logger()


@dataclass
class PackReport:
    """Result of packing files into an archive stream."""

    entry_count: int = 0
    total_bytes: int = 0
    paths: List[str] = field(default_factory=list)


class _CancellableReader:
    """File wrapper that stops a copy once the cancel event is set."""

    def __init__(self, fileobj: BinaryIO, cancel: threading.Event | None):
        self._fileobj = fileobj
        self._cancel = cancel

    def read(self, size: int = -1) -> bytes:
        if self._cancel is not None and self._cancel.is_set():
            raise BackupCancelledError("Backup cancelled while packing")
        return self._fileobj.read(size)


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise BackupCancelledError("Backup cancelled while packing")


def build_header(path: str, st: os.stat_result) -> tarfile.TarInfo:
    """
    Project a file's stat result into an archive header.

    The name is the absolute path, verbatim. tarfile keeps only the
    permission bits of mode when encoding the header.
    """
    info = tarfile.TarInfo(name=path)
    info.type = tarfile.REGTYPE
    info.size = st.st_size
    info.mode = st.st_mode
    info.mtime = st.st_mtime
    return info


def add_file(
    tar: tarfile.TarFile,
    path: str,
    cancel: threading.Event | None = None,
) -> int:
    """
    Append one file (header and full content) to an open tar writer.

    Args:
        tar: Tar writer opened in streaming mode
        path: Absolute path of the file
        cancel: Optional cancellation event

    Returns:
        Number of content bytes written

    Raises:
        ArchiveIOError: If the file cannot be opened, stat'ed or copied
    """
    try:
        with open(path, "rb") as f:
            st = os.fstat(f.fileno())
            info = build_header(path, st)
            tar.addfile(info, _CancellableReader(f, cancel))
    except DotBackupError:
        raise
    except OSError as e:
        raise ArchiveIOError(
            f"Failed to add {path} to archive: {e}",
            details={"path": path},
        ) from e

    logger.debug("archive_entry_added", path=path, size=info.size)
    return info.size


def pack(
    sink: BinaryIO,
    patterns: Iterable[str],
    compression: Compression = Compression.NONE,
    *,
    level: int | None = None,
    cancel: threading.Event | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> PackReport:
    """
    Pack every regular file matched by the patterns into a tar stream.

    The first I/O failure aborts the whole pack. The sink is flushed but
    not closed.

    Args:
        sink: Writable binary stream (need not be seekable)
        patterns: Glob patterns, resolved in order
        compression: Whole-stream compression
        level: Codec level, or None for the codec default
        cancel: Optional cancellation event checked between and during entries
        chunk_size: Buffer size used when copying file content

    Returns:
        PackReport listing the packed files

    Raises:
        GlobError: If a pattern is malformed
        ArchiveIOError: If reading a file or writing the stream fails
        BackupCancelledError: If cancel is set before packing finishes
    """
    patterns = list(patterns)
    paths = resolve_globs(patterns)
    report = PackReport()

    logger.info("pack_started", patterns=patterns, files=len(paths))

    try:
        with compressing_writer(sink, compression, level) as stream:
            with tarfile.open(
                fileobj=stream,
                mode="w|",
                format=tarfile.PAX_FORMAT,
                bufsize=chunk_size,
            ) as tar:
                for path in paths:
                    _check_cancelled(cancel)
                    report.total_bytes += add_file(tar, path, cancel)
                    report.entry_count += 1
                    report.paths.append(path)
    except DotBackupError:
        raise
    except (OSError, tarfile.TarError) as e:
        raise ArchiveIOError(
            f"Failed to write archive stream: {e}",
            details={"entries_written": report.entry_count},
        ) from e

    logger.info(
        "pack_complete",
        entries=report.entry_count,
        total_bytes=report.total_bytes,
        compression=Compression(compression).value,
    )

    return report
