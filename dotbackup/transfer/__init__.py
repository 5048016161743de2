# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Transfer Engine - Streaming upload and download over HTTP.
"""

from dotbackup.transfer.pipe import (
    BoundedPipe,
    PipeClosedError,
)

from dotbackup.transfer.uploader import upload
from dotbackup.transfer.downloader import download

__all__ = [
    "BoundedPipe",
    "PipeClosedError",
    "upload",
    "download",
]
