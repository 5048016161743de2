# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Pipe - Bounded in-process pipe between a producer thread and
a consumer.

The writer blocks while the pipe holds `capacity` chunks, so the
producer can never get further ahead of the consumer than that. Either
side can close the pipe; the other side then fails fast instead of
blocking forever.
"""

import io
import queue
import threading
from typing import Iterable, Iterator

from dotbackup.exceptions import ArchiveIOError, BackupCancelledError

# How often blocked operations re-check for closure and cancellation
POLL_INTERVAL = 0.05

_EOF = object()


class PipeClosedError(ArchiveIOError):
    """Raised when writing to a pipe whose reader has gone away."""

    pass


class BoundedPipe:
    """
    Thread-safe chunk pipe with a fixed buffer capacity.

    Usage:
        pipe = BoundedPipe(capacity=16)
        # producer thread
        pipe.writer.write(b"...")
        pipe.close_writer()
        # consumer
        for chunk in pipe.reader_iter():
            ...
    """

    def __init__(
        self,
        capacity: int,
        cancel: threading.Event | None = None,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._cancel = cancel or threading.Event()
        self._reader_closed = threading.Event()
        self._writer_closed = threading.Event()
        self._writer_error: BaseException | None = None
        self.writer = PipeWriter(self)

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    @property
    def cancelled(self) -> threading.Event:
        return self._cancel

    def _put(self, item: object) -> None:
        while True:
            if self._reader_closed.is_set():
                raise PipeClosedError("Pipe reader closed before all data was sent")
            if self._cancel.is_set() and item is not _EOF:
                raise BackupCancelledError("Transfer cancelled")
            try:
                self._queue.put(item, timeout=POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def put_chunk(self, data: bytes) -> None:
        """Queue one chunk, blocking while the pipe is full."""
        if self._writer_closed.is_set():
            raise ValueError("write to closed pipe")
        if data:
            self._put(bytes(data))

    def close_writer(self, error: BaseException | None = None) -> None:
        """
        Signal end of data, or a producer failure the reader should see.

        Never blocks forever: if the reader is gone the end marker is
        dropped.
        """
        if self._writer_closed.is_set():
            return
        self._writer_error = error
        self._writer_closed.set()
        try:
            self._put(_EOF)
        except PipeClosedError:
            pass

    def close_reader(self) -> None:
        """Stop consuming; a blocked writer fails with PipeClosedError."""
        self._reader_closed.set()
        # Drain so a writer blocked in put() wakes up immediately
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def reader_iter(self) -> Iterator[bytes]:
        """
        Yield chunks until the writer closes the pipe.

        Raises:
            BackupCancelledError: If the cancel event is set
            ArchiveIOError: If the writer closed the pipe with an error
        """
        while True:
            if self._cancel.is_set():
                self.close_reader()
                raise BackupCancelledError("Transfer cancelled")
            try:
                item = self._queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            if item is _EOF:
                break
            yield item

        if self._writer_error is not None:
            raise ArchiveIOError(
                f"Archive producer failed: {self._writer_error}",
            ) from self._writer_error


class PipeWriter(io.RawIOBase):
    """Writable stream feeding a BoundedPipe."""

    def __init__(self, pipe: BoundedPipe):
        super().__init__()
        self._pipe = pipe

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("write to closed file")
        data = bytes(data)
        self._pipe.put_chunk(data)
        return len(data)


class IteratorReader(io.RawIOBase):
    """
    Readable stream over an iterable of byte chunks.

    Wraps chunked sources such as an HTTP response body so they can be
    handed to tarfile or a decompressor.
    """

    def __init__(self, chunks: Iterable[bytes]):
        super().__init__()
        self._chunks = iter(chunks)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n
