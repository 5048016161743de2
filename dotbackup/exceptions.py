# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Exceptions - Custom exceptions for the dotbackup package.
"""


class DotBackupError(Exception):
    """Base exception for all dotbackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(DotBackupError):
    """Raised when configuration is invalid."""

    pass


class GlobError(DotBackupError):
    """Raised when a glob pattern is malformed."""

    pass


class ArchiveIOError(DotBackupError):
    """Raised when reading or writing files or the archive stream fails."""

    pass


class UnsafePathError(ArchiveIOError):
    """Raised when an archive entry would be written outside the restore root."""

    pass


class HTTPTransferError(DotBackupError):
    """Raised when an upload or download does not succeed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        merged = dict(details or {})
        if status_code is not None:
            merged.setdefault("status_code", status_code)
        super().__init__(message, details=merged)


class URLParseError(DotBackupError):
    """Raised when a pre-signed URL lacks valid expiry parameters."""

    pass


class BackupCancelledError(DotBackupError):
    """Raised when a transfer is cancelled or exceeds its deadline."""

    pass


class ExpiredURLError(DotBackupError):
    """Raised when a pre-signed URL has expired before a transfer starts."""

    pass
