# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for dotbackup tests.

Provides temporary dotfile trees, an in-memory blob store reachable
through httpx.MockTransport, and test configuration helpers.
"""

import io
import tarfile
import tempfile
from pathlib import Path
from typing import Dict, Generator

import httpx
import pytest

# 42 bytes
BASHRC = b'export PATH=$HOME/bin:$PATH\nalias ll="ls"\n'


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def home_dir(temp_dir: Path) -> Path:
    """
    Create a fake home directory with a few dotfiles.

    Layout:
        .bashrc                    (42 bytes)
        .gitconfig
        .config/nvim/init.lua
        .config/nvim/lua/plugins.lua
        .config/.hidden/token
    """
    home = temp_dir / "home" / "u"
    (home / ".config" / "nvim" / "lua").mkdir(parents=True)
    (home / ".config" / ".hidden").mkdir(parents=True)

    (home / ".bashrc").write_bytes(BASHRC)
    (home / ".gitconfig").write_bytes(b"[user]\n\tname = Test User\n")
    (home / ".config" / "nvim" / "init.lua").write_bytes(b"require('plugins')\n")
    (home / ".config" / "nvim" / "lua" / "plugins.lua").write_bytes(b"return {}\n")
    (home / ".config" / ".hidden" / "token").write_bytes(b"secret\n")

    return home


class FakeBlobStore:
    """
    In-memory object store speaking the pre-signed URL HTTP contract.

    PUT stores the streamed request body under the URL path; GET returns
    it with status 200, or 404 when nothing was stored.
    """

    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.requests: list = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.url.path

        if request.method == "PUT":
            self.objects[key] = request.read()
            return httpx.Response(200)

        if request.method == "GET":
            if key not in self.objects:
                return httpx.Response(404, content=b"NoSuchKey")
            return httpx.Response(200, stream=httpx.ByteStream(self.objects[key]))

        return httpx.Response(405)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    """Create an empty in-memory blob store."""
    return FakeBlobStore()


@pytest.fixture
def http_client(blob_store: FakeBlobStore) -> Generator[httpx.Client, None, None]:
    """Create an httpx client routed to the in-memory blob store."""
    with httpx.Client(transport=httpx.MockTransport(blob_store.handler)) as client:
        yield client


@pytest.fixture
def test_config():
    """Create a test configuration."""
    from dotbackup.config import BackupConfig

    return BackupConfig(
        pipe_capacity=4,
        chunk_size=4096,
        http_timeout=5.0,
    )


def make_archive(entries: Dict[str, bytes], mode: int = 0o644) -> bytes:
    """Build an uncompressed tar archive with the given entry names."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for name, content in entries.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(content)
            info.mode = mode
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def list_archive(data: bytes) -> list:
    """Return the members of an uncompressed tar archive."""
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
        return tar.getmembers()
