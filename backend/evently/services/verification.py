# backend/evently/services/verification.py
from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import status
from sqlalchemy.orm import Session

from evently.core.config import settings
from evently.core.email import EmailSender
from evently.core.errors import ErrorCode, http_error
from evently.core.tokens import generate_token_pair, verify_token
from evently.models import EmailTemplate, User
from evently.services.links import (
    is_expired,
    require_presented_token,
    utcnow,
    verification_link,
)
from evently.services.notifications import deliver, verification_email

logger = logging.getLogger("evently.verification")


def send_verification_email(db: Session, user: User, mailer: EmailSender) -> None:
    """
    Issue a fresh verification link for `user` and email it.

    Replaces any previous digest, so older links stop working.
    """
    if user.email_verified:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.ALREADY_VERIFIED, "Email is already verified.")

    pair = generate_token_pair()
    hours = int(settings.verification_expiry_hours)

    user.verification_token_hash = pair.token_hash
    user.verification_expires_at = utcnow() + timedelta(hours=hours)
    db.add(user)

    subject, body = verification_email(verification_link(pair.token), hours)
    deliver(
        db,
        mailer,
        to_email=user.email,
        template=EmailTemplate.VERIFICATION,
        subject=subject,
        text_body=body,
    )
    db.commit()

    logger.info("verification_issued user_id=%s", user.id)


def verify_email(db: Session, raw_token: str) -> User:
    """
    Consume a verification token.

    Every pending digest is checked with the timing-safe comparison; a
    successful match marks the user verified and clears the digest (single use).
    """
    token = require_presented_token(raw_token)

    pending = db.query(User).filter(User.verification_token_hash.isnot(None)).all()
    user = next((u for u in pending if verify_token(token, u.verification_token_hash)), None)

    if user is None:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_TOKEN, "Invalid or expired verification link.")

    if user.email_verified:
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.ALREADY_VERIFIED, "Email is already verified.")

    if is_expired(user.verification_expires_at):
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.TOKEN_EXPIRED,
            "Verification link has expired. Please request a new one.",
        )

    user.email_verified = True
    user.email_verified_at = utcnow()
    user.verification_token_hash = None
    user.verification_expires_at = None
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("email_verified user_id=%s", user.id)
    return user
