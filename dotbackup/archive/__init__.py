# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive Engine - Glob resolution, packing and unpacking of tar streams.
"""

from dotbackup.archive.globs import (
    FileEntry,
    resolve_globs,
    iter_file_entries,
)

from dotbackup.archive.packer import (
    pack,
    PackReport,
)

from dotbackup.archive.unpacker import (
    unpack,
    RestoreReport,
)

__all__ = [
    # Globs
    "FileEntry",
    "resolve_globs",
    "iter_file_entries",
    # Packer
    "pack",
    "PackReport",
    # Unpacker
    "unpack",
    "RestoreReport",
]
