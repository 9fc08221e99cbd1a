# backend/evently/services/rsvp.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import status
from sqlalchemy import func
from sqlalchemy.orm import Session

from evently.core.email import EmailSender
from evently.core.errors import ErrorCode, http_error
from evently.core.security import normalize_email
from evently.models import (
    EmailTemplate,
    Event,
    EventStatus,
    EventVisibility,
    Invite,
    InviteStatus,
    Rsvp,
    RsvpResponse,
)
from evently.services.invites import find_invite_by_token
from evently.services.links import is_expired, utcnow
from evently.services.notifications import confirmation_email, deliver

logger = logging.getLogger("evently.rsvp")

RESPONSE_MESSAGES = {
    RsvpResponse.YES.value: "You're going! We'll see you there.",
    RsvpResponse.NO.value: "Thanks for letting us know.",
    RsvpResponse.MAYBE.value: "Thanks for your response. We hope to see you!",
}


@dataclass
class RsvpSubmission:
    response: str
    guest_name: str
    guest_email: Optional[str] = None
    guest_count: int = 1
    notes: Optional[str] = None


def confirmed_guest_count(db: Session, event_id: int, *, exclude_rsvp_id: Optional[int] = None) -> int:
    """Sum of guest_count across YES responses."""
    q = db.query(func.coalesce(func.sum(Rsvp.guest_count), 0)).filter(
        Rsvp.event_id == event_id,
        Rsvp.response == RsvpResponse.YES.value,
    )
    if exclude_rsvp_id is not None:
        q = q.filter(Rsvp.id != exclude_rsvp_id)
    return int(q.scalar() or 0)


def _check_capacity(db: Session, event: Event, data: RsvpSubmission, existing: Optional[Rsvp]) -> None:
    if data.response != RsvpResponse.YES.value or not event.max_attendees:
        return

    current = confirmed_guest_count(db, event.id, exclude_rsvp_id=existing.id if existing else None)
    if current + int(data.guest_count) > int(event.max_attendees):
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.CAPACITY_REACHED,
            "Sorry, this event has reached its maximum capacity.",
        )


def _apply(rsvp: Rsvp, data: RsvpSubmission) -> None:
    rsvp.response = data.response
    rsvp.guest_name = data.guest_name.strip()
    rsvp.guest_count = int(data.guest_count)
    rsvp.notes = data.notes


def _send_confirmation(db: Session, mailer: EmailSender, event: Event, rsvp: Rsvp, invite_id: Optional[int]) -> None:
    if not rsvp.guest_email:
        return
    subject, body = confirmation_email(event, rsvp.guest_name, rsvp.response, rsvp.guest_count)
    deliver(
        db,
        mailer,
        to_email=rsvp.guest_email,
        template=EmailTemplate.CONFIRMATION,
        subject=subject,
        text_body=body,
        invite_id=invite_id,
    )


def submit_invite_rsvp(db: Session, token: str, data: RsvpSubmission, mailer: EmailSender) -> Rsvp:
    invite: Optional[Invite] = find_invite_by_token(db, token)
    if invite is None:
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.INVITE_NOT_FOUND, "Invite not found or has expired.")

    if is_expired(invite.expires_at):
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.INVITE_EXPIRED, "This invite has expired.")

    event = invite.event
    if event.status == EventStatus.CANCELLED.value:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.EVENT_CANCELLED, "This event has been cancelled.")

    if int(data.guest_count) > int(invite.plus_ones_allowed or 0) + 1:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.TOO_MANY_GUESTS,
            f"You can only bring up to {invite.plus_ones_allowed} additional guest(s).",
        )

    existing: Optional[Rsvp] = invite.rsvp
    _check_capacity(db, event, data, existing)

    now = utcnow()
    if existing is not None:
        rsvp = existing
        rsvp.updated_at = now
    else:
        rsvp = Rsvp(event_id=event.id, invite_id=invite.id, responded_at=now)

    _apply(rsvp, data)
    rsvp.guest_email = normalize_email(data.guest_email or "") or invite.email

    invite.status = InviteStatus.RESPONDED.value
    invite.responded_at = now

    db.add(rsvp)
    db.add(invite)
    db.flush()

    _send_confirmation(db, mailer, event, rsvp, invite.id)
    db.commit()
    db.refresh(rsvp)

    logger.info("rsvp_recorded event_id=%s invite_id=%s response=%s", event.id, invite.id, rsvp.response)
    return rsvp


def submit_public_rsvp(db: Session, event_id: int, data: RsvpSubmission, mailer: EmailSender) -> Rsvp:
    event = db.query(Event).filter(Event.id == event_id).first()
    if event is None:
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.EVENT_NOT_FOUND, "Event not found.")

    if event.status == EventStatus.CANCELLED.value:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.EVENT_CANCELLED, "This event has been cancelled.")

    if event.visibility == EventVisibility.PRIVATE.value:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.EVENT_NOT_OPEN, "This event requires an invitation.")

    if event.status != EventStatus.PUBLISHED.value:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.EVENT_NOT_OPEN, "This event is not accepting RSVPs.")

    email = normalize_email(data.guest_email or "")
    existing = (
        db.query(Rsvp)
        .filter(Rsvp.event_id == event.id, Rsvp.invite_id.is_(None), Rsvp.guest_email == email)
        .first()
    )
    _check_capacity(db, event, data, existing)

    now = utcnow()
    if existing is not None:
        rsvp = existing
        rsvp.updated_at = now
    else:
        rsvp = Rsvp(event_id=event.id, invite_id=None, guest_email=email, responded_at=now)

    _apply(rsvp, data)
    db.add(rsvp)
    db.flush()

    _send_confirmation(db, mailer, event, rsvp, None)
    db.commit()
    db.refresh(rsvp)

    logger.info("rsvp_recorded event_id=%s invite_id=- response=%s", event.id, rsvp.response)
    return rsvp
