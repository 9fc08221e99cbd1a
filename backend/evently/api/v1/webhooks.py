# backend/evently/api/v1/webhooks.py
from __future__ import annotations

import hmac
import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from fastapi import APIRouter, Body, Depends, Header, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from evently.core.config import settings
from evently.core.errors import ErrorCode, http_error
from evently.core.rate_limit import webhooks_rate_limit
from evently.db.session import get_db
from evently.models import EmailLog, EmailStatus, Invite, InviteStatus
from evently.services.links import utcnow

logger = logging.getLogger("evently.webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


# ---------- Payloads ----------

class _EmailEventBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: str = Field(..., min_length=1, max_length=255)
    recipient: Optional[str] = Field(default=None, max_length=255)
    timestamp: Optional[float] = None


class DeliveredEvent(_EmailEventBase):
    event: Literal["delivered"]


class OpenedEvent(_EmailEventBase):
    event: Literal["opened"]


class FailedEvent(_EmailEventBase):
    event: Literal["failed", "rejected"]
    reason: Optional[str] = Field(default=None, max_length=1000)


class BouncedEvent(_EmailEventBase):
    event: Literal["bounced", "complained"]
    reason: Optional[str] = Field(default=None, max_length=1000)


EmailEventIn = Annotated[
    Union[DeliveredEvent, OpenedEvent, FailedEvent, BouncedEvent],
    Field(discriminator="event"),
]

_email_event_adapter: TypeAdapter[Any] = TypeAdapter(EmailEventIn)

EVENT_STATUS: Dict[str, EmailStatus] = {
    "delivered": EmailStatus.DELIVERED,
    "opened": EmailStatus.OPENED,
    "failed": EmailStatus.FAILED,
    "rejected": EmailStatus.FAILED,
    "bounced": EmailStatus.BOUNCED,
    "complained": EmailStatus.BOUNCED,
}

# Later events never move a log back to an earlier state.
_STATUS_RANK: Dict[str, int] = {
    EmailStatus.QUEUED.value: 0,
    EmailStatus.SENT.value: 1,
    EmailStatus.DELIVERED.value: 2,
    EmailStatus.OPENED.value: 3,
    EmailStatus.FAILED.value: 4,
    EmailStatus.BOUNCED.value: 4,
}


class WebhookAckOut(BaseModel):
    received: bool = True
    status: Literal["updated", "ignored"]
    email_status: Optional[str] = None


# ---------- Helpers ----------

def decode_email_event(body: Any) -> Union[DeliveredEvent, OpenedEvent, FailedEvent, BouncedEvent]:
    try:
        return _email_event_adapter.validate_python(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


def normalize_message_id(raw: str) -> str:
    return raw.strip().strip("<>").strip()


def _check_webhook_token(presented: Optional[str]) -> None:
    secret = settings.email_webhook_secret
    if not secret:
        return
    if not presented or not hmac.compare_digest(presented.encode("utf-8"), secret.encode("utf-8")):
        raise http_error(
            status.HTTP_401_UNAUTHORIZED,
            ErrorCode.WEBHOOK_UNAUTHORIZED,
            "Invalid webhook token.",
        )


def apply_email_event(db: Session, payload) -> Optional[EmailLog]:
    """
    Apply a decoded provider event to the matching email_log row.
    Returns None when the message id is unknown.
    """
    message_id = normalize_message_id(payload.message_id)
    log = db.query(EmailLog).filter(EmailLog.provider_message_id == message_id).first()
    if log is None:
        return None

    new_status = EVENT_STATUS[payload.event]
    if _STATUS_RANK.get(new_status.value, 0) >= _STATUS_RANK.get(log.status, 0):
        log.status = new_status.value
        log.updated_at = utcnow()

    reason = getattr(payload, "reason", None)
    if reason:
        log.error = reason

    if new_status in (EmailStatus.BOUNCED, EmailStatus.FAILED) and log.invite_id is not None:
        invite = db.get(Invite, log.invite_id)
        if invite is not None and invite.status != InviteStatus.RESPONDED.value:
            invite.status = InviteStatus.BOUNCED.value
            db.add(invite)

    db.add(log)
    db.commit()
    return log


# ---------- Routes ----------

@router.post(
    "/email-events",
    response_model=WebhookAckOut,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(webhooks_rate_limit)],
)
def email_events_webhook(
    body: Any = Body(...),
    db: Session = Depends(get_db),
    webhook_token: Optional[str] = Header(default=None, alias="X-Webhook-Token"),
):
    """
    Delivery-status callbacks from the email provider.
    """
    _check_webhook_token(webhook_token)
    payload = decode_email_event(body)

    log = apply_email_event(db, payload)
    if log is None:
        logger.info("email_event_ignored event=%s", payload.event)
        return WebhookAckOut(status="ignored")

    logger.info("email_event_applied event=%s email_log_id=%s status=%s", payload.event, log.id, log.status)
    return WebhookAckOut(status="updated", email_status=log.status)
