# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup - Stream user configuration files to and from pre-signed URLs.

Backs up files matched by glob patterns as a single tar stream uploaded
with a streaming PUT, restores them from a GET under a caller-chosen
conflict and write-error policy, and checks pre-signed URL expiry
offline.
"""

__version__ = "0.1.0"

# Configuration
from dotbackup.config import (
    BackupConfig,
    Compression,
    ConflictPolicy,
    RestorePolicy,
    WriteErrorPolicy,
)

# Core functions
from dotbackup.core import (
    backup_user_config,
    restore_user_config,
    preview_backup,
    BackupResult,
    RestoreResult,
)

# Building blocks
from dotbackup.archive import pack, unpack, resolve_globs
from dotbackup.transfer import upload, download
from dotbackup.signed_url import parse_expiration, is_url_valid

# Environment-based configuration and profiles (additional helpers)
from dotbackup.env import (
    create_config_from_env,
    patterns_from_env,
    strict_restore,
    lenient_restore,
    compact_transfer,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "BackupConfig",
    "Compression",
    "ConflictPolicy",
    "RestorePolicy",
    "WriteErrorPolicy",
    # Core orchestration functions
    "backup_user_config",
    "restore_user_config",
    "preview_backup",
    "BackupResult",
    "RestoreResult",
    # Building blocks
    "pack",
    "unpack",
    "resolve_globs",
    "upload",
    "download",
    "parse_expiration",
    "is_url_valid",
    # Environment helpers and profiles
    "create_config_from_env",
    "patterns_from_env",
    "strict_restore",
    "lenient_restore",
    "compact_transfer",
]
