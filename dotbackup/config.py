# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation and passed into
each call, so behavior can differ per job without process-wide flags.
"""

from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import List


class Compression(str, Enum):
    """Whole-stream compression applied to the archive."""

    NONE = "none"
    GZIP = "gzip"
    ZSTD = "zstd"


class ConflictPolicy(str, Enum):
    """What a restore does when the target file already exists."""

    OVERWRITE = "overwrite"  # Truncate and replace
    SKIP_EXISTING = "skip_existing"  # Leave the existing file untouched


class WriteErrorPolicy(str, Enum):
    """What a restore does when writing a single entry fails."""

    PROPAGATE = "propagate"  # Abort the restore on the first failure
    LOG_AND_CONTINUE = "log_and_continue"  # Record and move to the next entry


# Compression level bounds per codec
COMPRESSION_LEVELS = {
    Compression.GZIP: (1, 9),
    Compression.ZSTD: (1, 22),
}

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_PIPE_CAPACITY = 16
DEFAULT_HTTP_TIMEOUT = 60.0
DEFAULT_GRACE_WINDOW = timedelta(minutes=1)


@dataclass(frozen=True)
class RestorePolicy:
    """
    Per-restore rules for conflicts and write failures.

    root, when set, confines restored files to that directory: entries
    whose resolved path escapes it are rejected as unsafe.
    """

    conflict: ConflictPolicy = ConflictPolicy.OVERWRITE
    on_write_error: WriteErrorPolicy = WriteErrorPolicy.LOG_AND_CONTINUE
    root: Path | None = None
    preserve_mtime: bool = True

    def __post_init__(self) -> None:
        # Accept plain strings from env/JSON callers
        try:
            object.__setattr__(self, "conflict", ConflictPolicy(self.conflict))
            object.__setattr__(
                self, "on_write_error", WriteErrorPolicy(self.on_write_error)
            )
        except ValueError as exc:
            from dotbackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Restore policy validation failed",
                details={"errors": [str(exc)]},
            ) from exc
        if self.root is not None and not isinstance(self.root, Path):
            object.__setattr__(self, "root", Path(self.root))


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for backup and restore jobs.

    This configuration is frozen after creation so a single instance can
    be shared between concurrent jobs.
    """

    # Whole-stream compression (must match between backup and restore)
    compression: Compression = Compression.NONE

    # Codec level; None uses the codec default
    compression_level: int | None = None

    # Maximum chunks buffered between the packer and the HTTP body
    pipe_capacity: int = DEFAULT_PIPE_CAPACITY

    # Read size for file copies and request body chunks
    chunk_size: int = DEFAULT_CHUNK_SIZE

    # Timeout in seconds for the network leg
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    # Clock-skew margin used when checking pre-signed URL expiry
    grace_window: timedelta = DEFAULT_GRACE_WINDOW

    # Refuse pre-signed URLs that have already expired
    check_url_expiry: bool = True

    # Default rules for restores
    restore_policy: RestorePolicy = field(default_factory=RestorePolicy)

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        try:
            object.__setattr__(self, "compression", Compression(self.compression))
        except ValueError:
            errors.append(f"Invalid compression: {self.compression!r}")

        if self.compression_level is not None:
            bounds = COMPRESSION_LEVELS.get(self.compression)
            if bounds is None:
                errors.append(
                    f"compression_level is not supported for {self.compression!r}"
                )
            elif not bounds[0] <= self.compression_level <= bounds[1]:
                errors.append(
                    f"compression_level must be within {bounds[0]}..{bounds[1]}, "
                    f"got {self.compression_level}"
                )

        if self.pipe_capacity < 1:
            errors.append(f"pipe_capacity must be >= 1, got {self.pipe_capacity}")

        if self.chunk_size < 1:
            errors.append(f"chunk_size must be >= 1, got {self.chunk_size}")

        if self.http_timeout <= 0:
            errors.append(f"http_timeout must be > 0, got {self.http_timeout}")

        if self.grace_window < timedelta(0):
            errors.append(f"grace_window must be >= 0, got {self.grace_window}")

        # Raise all errors at once
        if errors:
            from dotbackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return replace(self, **kwargs)

    def with_restore_policy(self, **kwargs) -> "BackupConfig":
        """Create a new config with fields of restore_policy replaced."""
        return replace(self, restore_policy=replace(self.restore_policy, **kwargs))
