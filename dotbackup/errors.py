# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for dotbackup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_invalid_compression(value: str | None) -> str:
    """
    Explain that the compression setting is invalid.
    """

    return (
        f"Invalid DOTBACKUP_COMPRESSION value: {value!r}. "
        "Expected one of: 'none', 'gzip', or 'zstd'."
    )


def explain_invalid_conflict_policy(value: str | None) -> str:
    """
    Explain that the restore conflict policy is invalid.
    """

    return (
        f"Invalid DOTBACKUP_CONFLICT value: {value!r}. "
        "Expected 'overwrite' or 'skip_existing'."
    )


def explain_invalid_write_error_policy(value: str | None) -> str:
    """
    Explain that the restore write-error policy is invalid.
    """

    return (
        f"Invalid DOTBACKUP_ON_WRITE_ERROR value: {value!r}. "
        "Expected 'propagate' or 'log_and_continue'."
    )


def explain_invalid_number_env(name: str, value: str | None, kind: str) -> str:
    """
    Explain that a numeric environment variable could not be parsed.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        f"It must be a non-negative {kind}."
    )


def explain_missing_globs() -> str:
    """
    Explain that no glob patterns were configured for a backup.
    """

    return (
        "No glob patterns configured. "
        "Set DOTBACKUP_GLOBS to a comma-separated list, e.g. "
        "\"~/.bashrc,~/.config/git/**\", or pass patterns explicitly."
    )
