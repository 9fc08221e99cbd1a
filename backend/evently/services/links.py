# backend/evently/services/links.py
"""
Helpers shared by every flow that hands out or accepts a credential link.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import status

from evently.core.config import settings
from evently.core.errors import ErrorCode, http_error


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    SQLite hands back naive datetimes even for timezone=True columns.
    Treat naive values as UTC so comparisons never mix naive/aware.
    """
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    expires = as_aware_utc(expires_at)
    if expires is None:
        return False
    return expires < (now or utcnow())


def require_presented_token(
    raw: Optional[str],
    *,
    missing_status: int = status.HTTP_400_BAD_REQUEST,
    bad_status: int = status.HTTP_400_BAD_REQUEST,
) -> str:
    """
    Reject empty and implausibly short tokens before any digest work.

    hash("") verifies against hash(""), so this guard is what keeps an empty
    string from ever matching a stored credential. The token is returned
    exactly as presented; padded copies do not verify.
    """
    token = raw or ""
    if not token.strip():
        raise http_error(missing_status, ErrorCode.MISSING_TOKEN, "Token is required.")
    if len(token) < settings.min_token_length:
        raise http_error(bad_status, ErrorCode.BAD_TOKEN, "Invalid token.")
    return token


def _app_url() -> str:
    return (settings.app_url or "http://localhost:3000").rstrip("/")


def rsvp_link(token: str) -> str:
    return f"{_app_url()}/rsvp/{token}"


def verification_link(token: str) -> str:
    return f"{_app_url()}/verify-email/{token}"


def preview_link(token: str) -> str:
    return f"{_app_url()}/preview/{token}"
