# backend/evently/services/invites.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from fastapi import status
from sqlalchemy.orm import Session

from evently.core.config import settings
from evently.core.email import EmailSender
from evently.core.errors import ErrorCode, http_error
from evently.core.security import normalize_email
from evently.core.tokens import generate_token_pair, hash_token
from evently.models import EmailStatus, EmailTemplate, Event, EventStatus, Invite, InviteStatus
from evently.services.links import as_aware_utc, is_expired, rsvp_link, utcnow
from evently.services.notifications import deliver, invite_email

logger = logging.getLogger("evently.invites")


@dataclass
class InviteDraft:
    email: str
    name: Optional[str] = None
    plus_ones_allowed: int = 0
    expires_at: Optional[datetime] = None


@dataclass
class IssuedInvite:
    invite: Invite
    token: str  # plaintext; returned once, never stored
    link: str


def _default_expiry() -> datetime:
    return utcnow() + timedelta(days=int(settings.invite_expiry_days))


def send_invite_email(db: Session, mailer: EmailSender, event: Event, invite: Invite, token: str) -> bool:
    subject, body = invite_email(event, invite, rsvp_link(token))
    log = deliver(
        db,
        mailer,
        to_email=invite.email,
        template=EmailTemplate.INVITE,
        subject=subject,
        text_body=body,
        invite_id=invite.id,
    )
    sent = log.status != EmailStatus.FAILED.value
    if sent:
        invite.sent_at = utcnow()
        if invite.status != InviteStatus.RESPONDED.value:
            invite.status = InviteStatus.SENT.value
        db.add(invite)
    return sent


def issue_invites(
    db: Session,
    event: Event,
    drafts: Iterable[InviteDraft],
    *,
    send_immediately: bool,
    mailer: EmailSender,
) -> List[IssuedInvite]:
    drafts = list(drafts)

    seen: set[str] = set()
    for d in drafts:
        email = normalize_email(d.email)
        if email in seen:
            raise http_error(
                status.HTTP_409_CONFLICT,
                ErrorCode.INVITE_DUPLICATE,
                "The same email appears more than once in this request.",
                email=email,
            )
        seen.add(email)

    existing = {
        e
        for (e,) in db.query(Invite.email)
        .filter(Invite.event_id == event.id, Invite.email.in_(list(seen)))
        .all()
    }
    if existing:
        raise http_error(
            status.HTTP_409_CONFLICT,
            ErrorCode.INVITE_DUPLICATE,
            "Some of these guests are already invited.",
            emails=sorted(existing),
        )

    issued: List[IssuedInvite] = []
    for d in drafts:
        pair = generate_token_pair()
        inv = Invite(
            event_id=event.id,
            email=normalize_email(d.email),
            name=(d.name or "").strip() or None,
            token_hash=pair.token_hash,
            status=InviteStatus.PENDING.value,
            plus_ones_allowed=int(d.plus_ones_allowed or 0),
            expires_at=as_aware_utc(d.expires_at) or _default_expiry(),
        )
        db.add(inv)
        issued.append(IssuedInvite(invite=inv, token=pair.token, link=rsvp_link(pair.token)))

    # ids are needed for the email log rows
    db.flush()

    if send_immediately:
        for item in issued:
            send_invite_email(db, mailer, event, item.invite, item.token)

    db.commit()
    for item in issued:
        db.refresh(item.invite)

    logger.info("invites_issued event_id=%s count=%s sent=%s", event.id, len(issued), send_immediately)
    return issued


def reissue_invite(db: Session, event: Event, invite: Invite, mailer: EmailSender) -> IssuedInvite:
    """
    Rotate the invite's credential and email the new link.
    The previous link stops working immediately.
    """
    pair = generate_token_pair()
    invite.token_hash = pair.token_hash

    if is_expired(invite.expires_at):
        invite.expires_at = _default_expiry()
        if invite.status == InviteStatus.EXPIRED.value:
            invite.status = InviteStatus.PENDING.value

    db.add(invite)
    send_invite_email(db, mailer, event, invite, pair.token)
    db.commit()
    db.refresh(invite)

    logger.info("invite_reissued event_id=%s invite_id=%s", event.id, invite.id)
    return IssuedInvite(invite=invite, token=pair.token, link=rsvp_link(pair.token))


def find_invite_by_token(db: Session, token: str) -> Optional[Invite]:
    return db.query(Invite).filter(Invite.token_hash == hash_token(token)).first()


def open_invite(db: Session, token: str) -> Invite:
    """
    Public lookup behind the RSVP page.

    - unknown token -> 404
    - expired -> status EXPIRED, 404
    - cancelled event -> 400
    - first view marks the invite OPENED
    """
    inv = find_invite_by_token(db, token)
    if inv is None:
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.INVITE_NOT_FOUND, "Invite not found or has expired.")

    if is_expired(inv.expires_at):
        if inv.status != InviteStatus.EXPIRED.value:
            inv.status = InviteStatus.EXPIRED.value
            db.add(inv)
            db.commit()
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.INVITE_EXPIRED, "This invite has expired.")

    if inv.event.status == EventStatus.CANCELLED.value:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.EVENT_CANCELLED, "This event has been cancelled.")

    if inv.status in {InviteStatus.PENDING.value, InviteStatus.SENT.value}:
        inv.status = InviteStatus.OPENED.value
        inv.opened_at = utcnow()
        db.add(inv)
        db.commit()
        db.refresh(inv)

    return inv
