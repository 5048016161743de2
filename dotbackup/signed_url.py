# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
dotbackup Signed URLs - Offline expiry checks for pre-signed URLs.

A pre-signed URL carries its signing time and lifetime in the query
string. Each provider uses its own parameter names, so the keys are
looked up through a small table of dialects. A dialect is used as a
unit: the date and the lifetime always come from the same provider.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Tuple
from urllib.parse import parse_qs, urlsplit, urlunsplit

import structlog

from dotbackup.config import DEFAULT_GRACE_WINDOW
from dotbackup.exceptions import URLParseError

logger = structlog.get_logger()

# Signing timestamp format shared by GCS V4 and AWS SigV4
SIGNING_DATE_FORMAT = "%Y%m%dT%H%M%SZ"

_SIGNING_DATE_RE = re.compile(r"^\d{8}T\d{6}Z$")
_EXPIRES_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class URLDialect:
    """Query parameter names used by one storage provider."""

    provider: str
    date_key: str
    expiry_key: str


# Tried in order; the first dialect whose date key is present wins
URL_DIALECTS: Tuple[URLDialect, ...] = (
    URLDialect(provider="gcs", date_key="X-Goog-Date", expiry_key="X-Goog-Expires"),
    URLDialect(provider="s3", date_key="X-Amz-Date", expiry_key="X-Amz-Expires"),
)


@dataclass(frozen=True)
class SignedURLInfo:
    """Signing parameters extracted from a pre-signed URL."""

    provider: str
    signed_at: datetime
    lifetime: timedelta
    expires_at: datetime


def redact_url(url: str) -> str:
    """
    Strip the query string (and its signature) from a URL for logging.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparsable url>"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _first_value(query: dict, key: str) -> str | None:
    values = query.get(key)
    if not values:
        return None
    return values[0]


def describe_signed_url(url: str) -> SignedURLInfo:
    """
    Extract the provider, signing date and lifetime of a pre-signed URL.

    Args:
        url: Pre-signed URL

    Returns:
        SignedURLInfo for the URL

    Raises:
        URLParseError: If the URL is unparsable or its date or expiry
            parameter is missing or malformed
    """
    try:
        parts = urlsplit(url)
        query = parse_qs(parts.query, keep_blank_values=True)
    except (AttributeError, TypeError, ValueError) as e:
        raise URLParseError(f"Cannot parse URL: {e}") from e

    dialect = None
    for candidate in URL_DIALECTS:
        if _first_value(query, candidate.date_key) is not None:
            dialect = candidate
            break

    if dialect is None:
        keys = ", ".join(d.date_key for d in URL_DIALECTS)
        raise URLParseError(
            f"URL has no signing date parameter (tried {keys})",
            details={"url": redact_url(url)},
        )

    raw_date = _first_value(query, dialect.date_key)
    if not _SIGNING_DATE_RE.match(raw_date):
        raise URLParseError(
            f"Cannot parse {dialect.date_key} {raw_date!r}",
            details={"url": redact_url(url), "provider": dialect.provider},
        )
    try:
        signed_at = datetime.strptime(raw_date, SIGNING_DATE_FORMAT).replace(tzinfo=UTC)
    except ValueError as e:
        raise URLParseError(
            f"Cannot parse {dialect.date_key} {raw_date!r}: {e}",
            details={"url": redact_url(url), "provider": dialect.provider},
        ) from e

    raw_expires = _first_value(query, dialect.expiry_key)
    if raw_expires is None or not _EXPIRES_RE.match(raw_expires):
        raise URLParseError(
            f"Cannot parse {dialect.expiry_key} {raw_expires!r}",
            details={"url": redact_url(url), "provider": dialect.provider},
        )
    lifetime = timedelta(seconds=int(raw_expires))

    return SignedURLInfo(
        provider=dialect.provider,
        signed_at=signed_at,
        lifetime=lifetime,
        expires_at=signed_at + lifetime,
    )


def parse_expiration(url: str) -> datetime:
    """
    Compute when a pre-signed URL expires.

    Args:
        url: Pre-signed URL

    Returns:
        Expiration instant (timezone-aware, UTC)

    Raises:
        URLParseError: If the URL lacks valid signing parameters
    """
    info = describe_signed_url(url)
    logger.debug(
        "signed_url_expiration_parsed",
        provider=info.provider,
        lifetime_seconds=int(info.lifetime.total_seconds()),
        expires_at=info.expires_at.isoformat(),
    )
    return info.expires_at


def is_signed_url(url: str) -> bool:
    """Check whether a URL carries any known signing date parameter."""
    try:
        query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    except (AttributeError, TypeError, ValueError):
        return False
    return any(d.date_key in query for d in URL_DIALECTS)


def is_url_valid(
    url: str,
    grace_window: timedelta = DEFAULT_GRACE_WINDOW,
    now: datetime | None = None,
) -> bool:
    """
    Check whether a pre-signed URL can still be used.

    The grace window absorbs clock skew between this machine and the
    signer: a URL counts as valid while now + grace_window is not past
    its expiration.

    Args:
        url: Pre-signed URL
        grace_window: Clock-skew margin (default one minute)
        now: Current time; defaults to datetime.now(UTC). Naive values
            are taken as UTC

    Returns:
        True if the URL has not expired

    Raises:
        URLParseError: If the URL lacks valid signing parameters
    """
    expires_at = parse_expiration(url)
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    valid = now + grace_window <= expires_at
    if not valid:
        logger.debug(
            "signed_url_expired",
            now=now.isoformat(),
            grace_seconds=grace_window.total_seconds(),
            expires_at=expires_at.isoformat(),
        )
    return valid
