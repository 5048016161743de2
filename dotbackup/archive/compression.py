# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Compression - Whole-stream compression stages for archives.

The archive is compressed end-to-end, never per entry. Both stages are
streaming: nothing is buffered beyond the codec's own window.

- gzip: stdlib gzip (level 1-9, default 6)
- zstd: zstandard (level 1-22, default 3)
"""

import gzip
from contextlib import contextmanager, suppress
from typing import BinaryIO, Iterator

import zstandard as zstd

from dotbackup.config import Compression

DEFAULT_GZIP_LEVEL = 6
DEFAULT_ZSTD_LEVEL = 3


@contextmanager
def _finalize_on_success(stream: BinaryIO) -> Iterator[None]:
    """
    Close a compressing stream, writing its trailer only on success.

    After a failure, errors from closing are suppressed and the first
    error propagates.
    """
    try:
        yield
    except BaseException:
        with suppress(Exception):
            stream.close()
        raise
    stream.close()


@contextmanager
def compressing_writer(
    sink: BinaryIO,
    compression: Compression,
    level: int | None = None,
) -> Iterator[BinaryIO]:
    """
    Wrap a sink so bytes written to it are compressed.

    The compressed frame is finalized on exit; the sink itself is left
    open for the caller.

    Args:
        sink: Writable binary stream
        compression: Compression to apply
        level: Codec level, or None for the codec default

    Yields:
        Writable binary stream feeding the sink
    """
    compression = Compression(compression)

    if compression is Compression.NONE:
        yield sink
        return

    if compression is Compression.GZIP:
        gz = gzip.GzipFile(
            fileobj=sink,
            mode="wb",
            compresslevel=level or DEFAULT_GZIP_LEVEL,
            mtime=0,
        )
        with _finalize_on_success(gz):
            yield gz
        return

    cctx = zstd.ZstdCompressor(level=level or DEFAULT_ZSTD_LEVEL)
    writer = cctx.stream_writer(sink, closefd=False)
    with _finalize_on_success(writer):
        yield writer


@contextmanager
def decompressing_reader(
    source: BinaryIO,
    compression: Compression,
) -> Iterator[BinaryIO]:
    """
    Wrap a source so bytes read from it are decompressed.

    Args:
        source: Readable binary stream (need not be seekable)
        compression: Compression the stream was written with

    Yields:
        Readable binary stream of decompressed bytes
    """
    compression = Compression(compression)

    if compression is Compression.NONE:
        yield source
        return

    if compression is Compression.GZIP:
        gz = gzip.GzipFile(fileobj=source, mode="rb")
        try:
            yield gz
        finally:
            gz.close()
        return

    dctx = zstd.ZstdDecompressor()
    reader = dctx.stream_reader(source, closefd=False)
    try:
        yield reader
    finally:
        reader.close()
