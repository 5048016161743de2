# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
End-to-end Tests for dotbackup.

Backup and restore jobs run against the in-memory blob store through
httpx.MockTransport.
"""

import time
from pathlib import Path

import httpx
import pytest

from conftest import BASHRC, make_archive
from dotbackup.config import (
    BackupConfig,
    Compression,
    ConflictPolicy,
    RestorePolicy,
)
from dotbackup.core import (
    backup_user_config,
    ensure_url_usable,
    preview_backup,
    restore_user_config,
)
from dotbackup.env import strict_restore
from dotbackup.exceptions import (
    ArchiveIOError,
    BackupCancelledError,
    ExpiredURLError,
    HTTPTransferError,
    URLParseError,
)

URL = "https://blobs.example/users/u/config.tar"

EXPIRED_URL = (
    "https://blobs.example/users/u/config.tar"
    "?X-Amz-Date=20240101T000000Z&X-Amz-Expires=3600&X-Amz-Signature=abc"
)


def _patterns(home: Path) -> list:
    return [str(home / "*"), str(home / ".config" / "**")]


def _snapshot(root: Path) -> dict:
    return {
        str(p): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()
    }


class SlowClient:
    """Client stub that consumes the request body slowly."""

    def __init__(self, delay: float = 0.05):
        self.delay = delay

    def put(self, url, content=None):
        for _ in content:
            time.sleep(self.delay)
        return httpx.Response(200)


# ============================================================================
# Backup
# ============================================================================

@pytest.mark.asyncio
async def test_backup_then_restore_round_trip(home_dir, blob_store, http_client):
    """Files come back byte-identical after being changed or deleted."""
    config = BackupConfig(compression=Compression.ZSTD, chunk_size=4096)
    before = _snapshot(home_dir)

    backup = await backup_user_config(URL, _patterns(home_dir), config, client=http_client)

    assert backup.entry_count == 5
    assert len(backup.operation_id) == 26
    assert backup.duration_seconds >= 0

    (home_dir / ".bashrc").write_bytes(b"# clobbered\n")
    (home_dir / ".config" / "nvim" / "init.lua").unlink()

    restore = await restore_user_config(URL, config, client=http_client)

    assert restore.restored_count == 5
    assert restore.errors == []
    assert _snapshot(home_dir) == before


@pytest.mark.asyncio
async def test_backup_rejects_expired_url(home_dir, blob_store, http_client):
    with pytest.raises(ExpiredURLError):
        await backup_user_config(EXPIRED_URL, _patterns(home_dir), client=http_client)

    assert blob_store.requests == []


@pytest.mark.asyncio
async def test_backup_expiry_check_can_be_disabled(home_dir, blob_store, http_client):
    config = BackupConfig(check_url_expiry=False)

    result = await backup_user_config(
        EXPIRED_URL, [str(home_dir / ".bashrc")], config, client=http_client
    )

    assert result.entry_count == 1
    assert "/users/u/config.tar" in blob_store.objects


@pytest.mark.asyncio
async def test_backup_timeout_cancels_transfer(temp_dir):
    """Missing the deadline stops the packer and the request body."""
    big = temp_dir / "big.bin"
    big.write_bytes(b"\1" * (2 * 1024 * 1024))
    config = BackupConfig(pipe_capacity=2, chunk_size=4096)

    started = time.monotonic()
    with pytest.raises(BackupCancelledError):
        await backup_user_config(
            URL, [str(big)], config, timeout=0.2, client=SlowClient()
        )

    assert time.monotonic() - started < 5


@pytest.mark.asyncio
async def test_backup_fully_sent_before_deadline_succeeds(home_dir, blob_store):
    """
    An upload whose body was already sent when the deadline passed is
    reported as a success, not as a cancellation.
    """

    def slow_ack(request):
        response = blob_store.handler(request)
        time.sleep(0.5)
        return response

    with httpx.Client(transport=httpx.MockTransport(slow_ack)) as client:
        result = await backup_user_config(
            URL, [str(home_dir / ".bashrc")], timeout=0.2, client=client
        )

    assert result.entry_count == 1
    assert "/users/u/config.tar" in blob_store.objects


@pytest.mark.asyncio
async def test_backup_propagates_http_errors(home_dir):
    def handler(request):
        return httpx.Response(403)

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(HTTPTransferError) as exc_info:
            await backup_user_config(URL, [str(home_dir / ".bashrc")], client=client)

    assert exc_info.value.status_code == 403


def test_preview_backup_lists_entries(home_dir):
    entries = preview_backup([str(home_dir / ".bashrc"), str(home_dir / ".gitconfig")])

    assert [e.path for e in entries] == [
        str(home_dir / ".bashrc"),
        str(home_dir / ".gitconfig"),
    ]
    assert entries[0].size == len(BASHRC)


def test_ensure_url_usable_ignores_unsigned_urls():
    ensure_url_usable(URL, BackupConfig())


def test_ensure_url_usable_rejects_blank_signing_date():
    """An empty X-Amz-Date still marks the URL as signed, and fails to parse."""
    with pytest.raises(URLParseError):
        ensure_url_usable(f"{URL}?X-Amz-Date=&X-Amz-Expires=3600", BackupConfig())


# ============================================================================
# Restore
# ============================================================================

@pytest.mark.asyncio
async def test_restore_skip_existing(home_dir, blob_store, http_client):
    config = BackupConfig()
    await backup_user_config(URL, _patterns(home_dir), config, client=http_client)

    (home_dir / ".bashrc").write_bytes(b"# local edit\n")
    (home_dir / ".gitconfig").unlink()

    result = await restore_user_config(
        URL,
        config,
        RestorePolicy(conflict=ConflictPolicy.SKIP_EXISTING),
        client=http_client,
    )

    assert result.restored_count == 1
    assert result.report.skipped_count == 4
    assert (home_dir / ".bashrc").read_bytes() == b"# local edit\n"
    assert (home_dir / ".gitconfig").exists()


@pytest.mark.asyncio
async def test_restore_uses_config_policy_by_default(home_dir, blob_store, http_client):
    config = BackupConfig().with_restore_policy(conflict=ConflictPolicy.SKIP_EXISTING)
    await backup_user_config(URL, [str(home_dir / ".bashrc")], config, client=http_client)

    result = await restore_user_config(URL, config, client=http_client)

    assert result.report.skipped_count == 1


@pytest.mark.asyncio
async def test_restore_log_and_continue_reports_errors(temp_dir, blob_store, http_client):
    """A failed entry is listed in the result and the rest are restored."""
    good = temp_dir / "out" / "good.txt"
    blocker = temp_dir / "blocker"
    blocker.write_bytes(b"not a directory")
    bad = blocker / "child.txt"
    blob_store.objects["/users/u/config.tar"] = make_archive(
        {str(bad): b"lost", str(good): b"kept"}
    )

    result = await restore_user_config(URL, client=http_client)

    assert result.restored_count == 1
    assert len(result.errors) == 1
    assert good.read_bytes() == b"kept"


@pytest.mark.asyncio
async def test_restore_strict_profile_aborts(temp_dir, blob_store, http_client):
    blocker = temp_dir / "blocker"
    blocker.write_bytes(b"not a directory")
    blob_store.objects["/users/u/config.tar"] = make_archive(
        {str(blocker / "child.txt"): b"lost"}
    )

    with pytest.raises(ArchiveIOError):
        await restore_user_config(URL, strict_restore(BackupConfig()), client=http_client)


@pytest.mark.asyncio
async def test_restore_missing_object(http_client):
    with pytest.raises(HTTPTransferError) as exc_info:
        await restore_user_config(URL, client=http_client)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_restore_with_wrong_compression(home_dir, blob_store, http_client):
    await backup_user_config(
        URL,
        [str(home_dir / ".bashrc")],
        BackupConfig(compression=Compression.GZIP),
        client=http_client,
    )

    with pytest.raises(ArchiveIOError):
        await restore_user_config(URL, BackupConfig(), client=http_client)


@pytest.mark.asyncio
async def test_restore_rejects_expired_url(blob_store, http_client):
    with pytest.raises(ExpiredURLError):
        await restore_user_config(EXPIRED_URL, client=http_client)

    assert blob_store.requests == []
