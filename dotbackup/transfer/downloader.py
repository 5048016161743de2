# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Downloader - Stream an archive from a pre-signed URL.
"""

import io
from contextlib import contextmanager
from typing import BinaryIO, Iterator

import httpx
import structlog

from dotbackup.config import BackupConfig
from dotbackup.exceptions import HTTPTransferError
from dotbackup.signed_url import redact_url
from dotbackup.transfer.pipe import IteratorReader

logger = structlog.get_logger()


@contextmanager
def download(
    url: str,
    config: BackupConfig | None = None,
    *,
    client: httpx.Client | None = None,
) -> Iterator[BinaryIO]:
    """
    GET a URL and yield its body as a readable stream.

    The body is read raw (no HTTP content decoding), so a compressed
    archive reaches the caller exactly as it was uploaded. The response
    is closed when the block exits.

    Args:
        url: Pre-signed download URL
        config: Backup configuration (timeout, chunk size)
        client: Optional httpx client; one is created per call otherwise

    Yields:
        Readable binary stream over the response body

    Raises:
        HTTPTransferError: If the status is not exactly 200, or the
            connection fails before or while reading the body
    """
    config = config or BackupConfig()
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=config.http_timeout)

    logger.info("download_started", url=redact_url(url))

    try:
        with client.stream("GET", url) as response:
            if response.status_code != httpx.codes.OK:
                raise HTTPTransferError(
                    f"Download failed with status {response.status_code}",
                    status_code=response.status_code,
                    details={"url": redact_url(url)},
                )
            body = io.BufferedReader(
                IteratorReader(response.iter_raw(config.chunk_size)),
                buffer_size=config.chunk_size,
            )
            yield body
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("download_failed", url=redact_url(url), error=str(e))
        raise HTTPTransferError(
            f"Download request failed: {e}",
            details={"url": redact_url(url)},
        ) from e
    finally:
        if owns_client:
            client.close()

    logger.info("download_complete", url=redact_url(url))
