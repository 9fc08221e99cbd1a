# backend/evently/core/errors.py

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Optional

from fastapi import HTTPException

from evently.core.request_context import get_request_id

logger = logging.getLogger("evently")


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    USER_DISABLED = "USER_DISABLED"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    MISSING_TOKEN = "MISSING_TOKEN"
    BAD_TOKEN = "BAD_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_CANCELLED = "EVENT_CANCELLED"
    EVENT_NOT_OPEN = "EVENT_NOT_OPEN"
    INVITE_NOT_FOUND = "INVITE_NOT_FOUND"
    INVITE_EXPIRED = "INVITE_EXPIRED"
    INVITE_DUPLICATE = "INVITE_DUPLICATE"
    TOO_MANY_GUESTS = "TOO_MANY_GUESTS"
    CAPACITY_REACHED = "CAPACITY_REACHED"
    PREVIEW_NOT_FOUND = "PREVIEW_NOT_FOUND"
    PREVIEW_EXPIRED = "PREVIEW_EXPIRED"
    WEBHOOK_UNAUTHORIZED = "WEBHOOK_UNAUTHORIZED"


def http_error(status_code: int, code: ErrorCode | str, message: str, **extra: Any) -> HTTPException:
    """
    Build an HTTPException whose dict detail is merged into the standard error
    contract by the handler in main.py.
    """
    detail: dict[str, Any] = {
        "code": code.value if isinstance(code, ErrorCode) else str(code),
        "message": message,
    }
    if extra:
        detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


class RequestIdFilter(logging.Filter):
    """
    Injects request_id into every LogRecord as `record.request_id`.
    Safe in non-request contexts (falls back to "-").
    """

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.request_id = get_request_id()
        except Exception:
            record.request_id = "-"
        return True


def install_request_id_logging(
    logger_name: str = "evently",
    *,
    include_root: bool = True,
) -> None:
    """
    Attach RequestIdFilter so logs can include %(request_id)s in the formatter.
    Call once during startup, right after logging.basicConfig().
    """
    filt = RequestIdFilter()

    if include_root:
        root = logging.getLogger()
        root.addFilter(filt)

    logging.getLogger(logger_name).addFilter(filt)


def log_exception_with_context(
    message: str,
    *,
    request_id: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """
    Log an exception with stack trace and request context.

    Use inside exception handlers that re-raise:

        try:
            ...
        except Exception:
            log_exception_with_context("Invite email failed", extra={"invite_id": inv.id})
            raise
    """
    # record.request_id is already set by the record factory; extra may not overwrite it
    ctx: dict[str, Any] = {"request_id": request_id or _safe_request_id()}
    if extra:
        ctx.update(extra)

    payload = {f"ctx_{k}": v for k, v in ctx.items()}
    summary = " ".join(f"{k}={v}" for k, v in ctx.items())
    logger.exception("%s %s", message, summary, extra=payload)


def _safe_request_id() -> str:
    try:
        return get_request_id() or "-"
    except Exception:
        return "-"
