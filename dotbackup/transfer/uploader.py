# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Uploader - Stream an archive to a pre-signed URL.

Packing runs on a dedicated worker thread that writes into a bounded
pipe; the calling thread sends the read end as a chunked HTTP PUT body.
Memory use is bounded by the pipe capacity regardless of archive size.
The worker's outcome and the HTTP outcome are merged into one result.
"""

import threading
from typing import Iterable, Iterator

import httpx
import structlog

from dotbackup.archive.packer import PackReport, pack
from dotbackup.config import BackupConfig
from dotbackup.exceptions import DotBackupError, HTTPTransferError
from dotbackup.signed_url import redact_url
from dotbackup.transfer.pipe import BoundedPipe, PipeClosedError

logger = structlog.get_logger()


def put_stream(
    url: str,
    body: Iterator[bytes],
    config: BackupConfig,
    client: httpx.Client | None = None,
) -> httpx.Response:
    """
    PUT a streamed body to a URL.

    The body is sent with chunked transfer encoding; no Content-Length
    is computed. Any 2xx status is success and the response body is
    ignored.

    Raises:
        HTTPTransferError: On a transport failure or a non-2xx status
    """
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=config.http_timeout)

    try:
        response = client.put(url, content=body)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise HTTPTransferError(
            f"Upload request failed: {e}",
            details={"url": redact_url(url)},
        ) from e
    finally:
        if owns_client:
            client.close()

    if not response.is_success:
        raise HTTPTransferError(
            f"Upload rejected with status {response.status_code}",
            status_code=response.status_code,
            details={"url": redact_url(url)},
        )

    return response


def upload(
    url: str,
    patterns: Iterable[str],
    config: BackupConfig | None = None,
    *,
    cancel: threading.Event | None = None,
    client: httpx.Client | None = None,
) -> PackReport:
    """
    Pack files matched by the patterns and PUT the archive to a URL.

    Args:
        url: Pre-signed upload URL
        patterns: Glob patterns to back up
        config: Backup configuration (compression, pipe capacity, timeout)
        cancel: Optional event; setting it stops both the packer and the
            request body
        client: Optional httpx client; one is created per call otherwise

    Returns:
        PackReport from the worker

    Raises:
        GlobError, ArchiveIOError: If packing fails (takes precedence)
        HTTPTransferError: If the request fails or is rejected
        BackupCancelledError: If cancel is set before the upload finishes
    """
    config = config or BackupConfig()
    cancel = cancel or threading.Event()
    patterns = list(patterns)
    pipe = BoundedPipe(config.pipe_capacity, cancel)
    outcome: dict = {}

    def produce() -> None:
        try:
            outcome["report"] = pack(
                pipe.writer,
                patterns,
                config.compression,
                level=config.compression_level,
                cancel=cancel,
                chunk_size=config.chunk_size,
            )
        except BaseException as e:
            # Handed back to the caller below
            outcome["error"] = e
            pipe.close_writer(e)
        else:
            pipe.close_writer()

    logger.info(
        "upload_started",
        url=redact_url(url),
        patterns=patterns,
        compression=config.compression.value,
        pipe_capacity=config.pipe_capacity,
    )

    worker = threading.Thread(target=produce, name="dotbackup-pack", daemon=True)
    worker.start()

    transfer_error: DotBackupError | None = None
    try:
        response = put_stream(url, pipe.reader_iter(), config, client)
    except DotBackupError as e:
        transfer_error = e
    finally:
        # Unblock the worker whatever happened to the request
        pipe.close_reader()
        worker.join()

    pack_error = outcome.get("error")

    if pack_error is not None and not isinstance(pack_error, PipeClosedError):
        logger.error("upload_pack_failed", url=redact_url(url), error=str(pack_error))
        raise pack_error
    if transfer_error is not None:
        logger.error("upload_failed", url=redact_url(url), error=str(transfer_error))
        raise transfer_error
    if pack_error is not None:
        # Server answered 2xx without reading the whole archive
        logger.error("upload_incomplete", url=redact_url(url), error=str(pack_error))
        raise HTTPTransferError(
            "Upload finished before the archive was fully sent",
            status_code=response.status_code,
            details={"url": redact_url(url)},
        ) from pack_error

    report: PackReport = outcome["report"]
    logger.info(
        "upload_complete",
        url=redact_url(url),
        status_code=response.status_code,
        entries=report.entry_count,
        total_bytes=report.total_bytes,
    )
    return report
