# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Core - Orchestrator functions for backup and restore jobs.

This module ties the components together: glob resolution, packing,
streaming upload, download and unpacking. The blocking work runs on
worker threads so these coroutines can be awaited from an event loop.
"""

import asyncio
import functools
import threading
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Iterable, List

import httpx
import structlog
from ulid import ULID

from dotbackup.archive.globs import FileEntry, iter_file_entries
from dotbackup.archive.packer import PackReport
from dotbackup.archive.unpacker import RestoreReport, unpack
from dotbackup.config import BackupConfig, RestorePolicy
from dotbackup.exceptions import BackupCancelledError, ExpiredURLError
from dotbackup.signed_url import is_signed_url, is_url_valid, parse_expiration, redact_url
from dotbackup.transfer.downloader import download
from dotbackup.transfer.uploader import upload

logger = structlog.get_logger()


@dataclass
class BackupResult:
    """Result of a backup job."""

    operation_id: str  # ULID
    report: PackReport
    duration_seconds: float

    @property
    def entry_count(self) -> int:
        return self.report.entry_count


@dataclass
class RestoreResult:
    """Result of a restore job."""

    operation_id: str  # ULID
    report: RestoreReport
    duration_seconds: float

    @property
    def restored_count(self) -> int:
        return self.report.restored_count

    @property
    def errors(self) -> List[str]:
        return self.report.errors


def _new_operation_id() -> str:
    return str(ULID())


def ensure_url_usable(url: str, config: BackupConfig) -> None:
    """
    Refuse a pre-signed URL that has already expired.

    URLs without signing parameters are passed through unchecked.

    Raises:
        ExpiredURLError: If the URL expires within the grace window
        URLParseError: If the URL has malformed signing parameters
    """
    if not config.check_url_expiry or not is_signed_url(url):
        return
    if not is_url_valid(url, grace_window=config.grace_window):
        raise ExpiredURLError(
            "Pre-signed URL has expired",
            details={
                "url": redact_url(url),
                "expires_at": parse_expiration(url).isoformat(),
            },
        )


def preview_backup(patterns: Iterable[str]) -> List[FileEntry]:
    """
    List the files a backup with these patterns would include.

    Args:
        patterns: Glob patterns

    Returns:
        FileEntry for every matched regular file, in archive order
    """
    return list(iter_file_entries(patterns))


async def backup_user_config(
    url: str,
    patterns: Iterable[str],
    config: BackupConfig | None = None,
    *,
    timeout: float | None = None,
    client: httpx.Client | None = None,
) -> BackupResult:
    """
    Back up files matching the patterns to a pre-signed URL.

    Args:
        url: Pre-signed upload URL
        patterns: Glob patterns to back up
        config: Backup configuration
        timeout: Optional deadline in seconds for the whole job
        client: Optional httpx client

    Returns:
        BackupResult with the pack report

    Raises:
        ExpiredURLError: If the URL has already expired
        BackupCancelledError: If the deadline passes
        GlobError, ArchiveIOError, HTTPTransferError: If the job fails
    """
    config = config or BackupConfig()
    patterns = list(patterns)
    operation_id = _new_operation_id()
    start_time = datetime.now(UTC)

    ensure_url_usable(url, config)

    logger.info(
        "backup_started",
        operation_id=operation_id,
        url=redact_url(url),
        patterns=patterns,
    )

    cancel = threading.Event()
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(
        None,
        functools.partial(upload, url, patterns, config, cancel=cancel, client=client),
    )

    try:
        report = await asyncio.wait_for(asyncio.shield(future), timeout)
    except asyncio.TimeoutError:
        cancel.set()
        # Let the worker threads unwind before reporting
        await asyncio.wait({future})
        error = future.exception()
        if error is None:
            # The upload finished before the cancel event was seen
            logger.warning(
                "backup_completed_after_deadline",
                operation_id=operation_id,
                timeout=timeout,
            )
            report = future.result()
        else:
            logger.error("backup_timed_out", operation_id=operation_id, timeout=timeout)
            raise BackupCancelledError(
                f"Backup did not finish within {timeout} seconds",
                details={"operation_id": operation_id},
            ) from error
    except asyncio.CancelledError:
        cancel.set()
        raise
    except Exception as e:
        logger.error("backup_failed", operation_id=operation_id, error=str(e))
        raise

    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "backup_completed",
        operation_id=operation_id,
        entries=report.entry_count,
        total_bytes=report.total_bytes,
        duration=duration,
    )

    return BackupResult(
        operation_id=operation_id,
        report=report,
        duration_seconds=duration,
    )


def _download_and_unpack(
    url: str,
    config: BackupConfig,
    policy: RestorePolicy,
    client: httpx.Client | None,
) -> RestoreReport:
    with download(url, config, client=client) as body:
        return unpack(
            body,
            policy,
            config.compression,
            chunk_size=config.chunk_size,
        )


async def restore_user_config(
    url: str,
    config: BackupConfig | None = None,
    policy: RestorePolicy | None = None,
    *,
    client: httpx.Client | None = None,
) -> RestoreResult:
    """
    Restore files from an archive at a pre-signed URL.

    Under WriteErrorPolicy.LOG_AND_CONTINUE a partial restore completes
    and its failures are listed in the result's errors.

    Args:
        url: Pre-signed download URL
        config: Backup configuration (compression must match the backup)
        policy: Restore policy; defaults to config.restore_policy
        client: Optional httpx client

    Returns:
        RestoreResult with the restore report

    Raises:
        ExpiredURLError: If the URL has already expired
        HTTPTransferError: If the download fails
        ArchiveIOError: If the archive is corrupt, or a write fails under
            WriteErrorPolicy.PROPAGATE
    """
    config = config or BackupConfig()
    policy = policy or config.restore_policy
    operation_id = _new_operation_id()
    start_time = datetime.now(UTC)

    ensure_url_usable(url, config)

    logger.info(
        "restore_started",
        operation_id=operation_id,
        url=redact_url(url),
        conflict=policy.conflict.value,
        on_write_error=policy.on_write_error.value,
    )

    loop = asyncio.get_running_loop()
    try:
        report = await loop.run_in_executor(
            None,
            functools.partial(_download_and_unpack, url, config, policy, client),
        )
    except Exception as e:
        logger.error("restore_failed", operation_id=operation_id, error=str(e))
        raise

    duration = (datetime.now(UTC) - start_time).total_seconds()

    if report.failed_count:
        logger.warning(
            "restore_completed_with_errors",
            operation_id=operation_id,
            failed=report.failed_count,
            errors=report.errors,
        )

    logger.info(
        "restore_completed",
        operation_id=operation_id,
        restored=report.restored_count,
        skipped=report.skipped_count,
        failed=report.failed_count,
        duration=duration,
    )

    return RestoreResult(
        operation_id=operation_id,
        report=report,
        duration_seconds=duration,
    )
