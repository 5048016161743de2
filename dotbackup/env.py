# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and restore profiles.

These helpers are small, convenient wrappers around BackupConfig and
BackupConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables
- Read the list of glob patterns to back up
- Apply ready-made profiles
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import List

from dotbackup.config import (
    DEFAULT_GRACE_WINDOW,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_PIPE_CAPACITY,
    BackupConfig,
    Compression,
    ConflictPolicy,
    RestorePolicy,
    WriteErrorPolicy,
)
from dotbackup.errors import (
    explain_invalid_compression,
    explain_invalid_conflict_policy,
    explain_invalid_number_env,
    explain_invalid_write_error_policy,
    explain_missing_globs,
)
from dotbackup.exceptions import ConfigurationError


def _parse_compression(value: str | None) -> Compression:
    if not value:
        return Compression.NONE
    try:
        return Compression(value.strip().lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_compression(value)) from exc


def _parse_conflict(value: str | None) -> ConflictPolicy:
    if not value:
        return ConflictPolicy.OVERWRITE
    try:
        return ConflictPolicy(value.strip().lower().replace("-", "_"))
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_conflict_policy(value)) from exc


def _parse_write_error(value: str | None) -> WriteErrorPolicy:
    if not value:
        return WriteErrorPolicy.LOG_AND_CONTINUE
    try:
        return WriteErrorPolicy(value.strip().lower().replace("-", "_"))
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_write_error_policy(value)) from exc


def _parse_int(name: str, value: str | None, default: int | None) -> int | None:
    if not value:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_number_env(name, value, "integer")) from exc
    if number < 0:
        raise ConfigurationError(explain_invalid_number_env(name, value, "integer"))
    return number


def _parse_float(name: str, value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_number_env(name, value, "number")) from exc
    if number < 0:
        raise ConfigurationError(explain_invalid_number_env(name, value, "number"))
    return number


def create_config_from_env() -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    Optional environment variables:
        - DOTBACKUP_COMPRESSION: 'none' | 'gzip' | 'zstd' (default: none)
        - DOTBACKUP_COMPRESSION_LEVEL: codec level (default: codec default)
        - DOTBACKUP_PIPE_CAPACITY: buffered chunks between packer and upload
        - DOTBACKUP_HTTP_TIMEOUT: seconds (default: 60)
        - DOTBACKUP_GRACE_SECONDS: URL expiry clock-skew margin (default: 60)
        - DOTBACKUP_CONFLICT: 'overwrite' | 'skip_existing'
        - DOTBACKUP_ON_WRITE_ERROR: 'propagate' | 'log_and_continue'
        - DOTBACKUP_RESTORE_ROOT: confine restored files to this directory
    """

    compression = _parse_compression(os.getenv("DOTBACKUP_COMPRESSION"))
    level = _parse_int(
        "DOTBACKUP_COMPRESSION_LEVEL", os.getenv("DOTBACKUP_COMPRESSION_LEVEL"), None
    )
    pipe_capacity = _parse_int(
        "DOTBACKUP_PIPE_CAPACITY", os.getenv("DOTBACKUP_PIPE_CAPACITY"), DEFAULT_PIPE_CAPACITY
    )
    http_timeout = _parse_float(
        "DOTBACKUP_HTTP_TIMEOUT", os.getenv("DOTBACKUP_HTTP_TIMEOUT"), DEFAULT_HTTP_TIMEOUT
    )
    grace_seconds = _parse_float(
        "DOTBACKUP_GRACE_SECONDS",
        os.getenv("DOTBACKUP_GRACE_SECONDS"),
        DEFAULT_GRACE_WINDOW.total_seconds(),
    )
    root_env = os.getenv("DOTBACKUP_RESTORE_ROOT")

    policy = RestorePolicy(
        conflict=_parse_conflict(os.getenv("DOTBACKUP_CONFLICT")),
        on_write_error=_parse_write_error(os.getenv("DOTBACKUP_ON_WRITE_ERROR")),
        root=Path(root_env).expanduser() if root_env else None,
    )

    return BackupConfig(
        compression=compression,
        compression_level=level,
        pipe_capacity=pipe_capacity,
        http_timeout=http_timeout,
        grace_window=timedelta(seconds=grace_seconds),
        restore_policy=policy,
    )


def patterns_from_env(required: bool = True) -> List[str]:
    """
    Read glob patterns from DOTBACKUP_GLOBS (comma-separated).

    Raises:
        ConfigurationError: If required and no patterns are set
    """
    value = os.getenv("DOTBACKUP_GLOBS", "")
    patterns = [p.strip() for p in value.split(",") if p.strip()]
    if required and not patterns:
        raise ConfigurationError(explain_missing_globs())
    return patterns


# ============================================================================
# Profiles
# ============================================================================

def strict_restore(config: BackupConfig) -> BackupConfig:
    """
    Apply a cautious restore profile.

    - Never overwrite files that already exist
    - Abort on the first write failure
    """

    return config.with_restore_policy(
        conflict=ConflictPolicy.SKIP_EXISTING,
        on_write_error=WriteErrorPolicy.PROPAGATE,
    )


def lenient_restore(config: BackupConfig) -> BackupConfig:
    """
    Apply a best-effort restore profile.

    - Overwrite existing files with the backed up version
    - Log failed entries and keep going
    """

    return config.with_restore_policy(
        conflict=ConflictPolicy.OVERWRITE,
        on_write_error=WriteErrorPolicy.LOG_AND_CONTINUE,
    )


def compact_transfer(config: BackupConfig) -> BackupConfig:
    """
    Compress archives with zstd to cut transfer size.

    Restores must use the same setting.
    """

    return config.with_updates(compression=Compression.ZSTD, compression_level=None)
