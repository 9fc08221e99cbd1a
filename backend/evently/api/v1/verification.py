# backend/evently/api/v1/verification.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from evently.core.email import EmailSender, get_mailer
from evently.core.rate_limit import auth_rate_limit, token_lookup_rate_limit
from evently.core.security import get_current_user
from evently.db.session import get_db
from evently.models import User
from evently.services import verification as verification_service

router = APIRouter(prefix="/auth", tags=["auth"])


class VerifyEmailIn(BaseModel):
    token: str = Field(..., max_length=512)


class VerifyEmailOut(BaseModel):
    success: bool
    email: str


class ResendVerificationOut(BaseModel):
    detail: str


class VerificationStatusOut(BaseModel):
    email: str
    email_verified: bool
    email_verified_at: Optional[datetime] = None
    pending_link_expires_at: Optional[datetime] = None


@router.post(
    "/verify-email",
    response_model=VerifyEmailOut,
    dependencies=[Depends(token_lookup_rate_limit)],
)
def verify_email(payload: VerifyEmailIn, db: Session = Depends(get_db)) -> VerifyEmailOut:
    user = verification_service.verify_email(db, payload.token)
    return VerifyEmailOut(success=True, email=user.email)


@router.post(
    "/resend-verification",
    response_model=ResendVerificationOut,
    dependencies=[Depends(auth_rate_limit)],
)
def resend_verification(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
) -> ResendVerificationOut:
    verification_service.send_verification_email(db, current_user, mailer)
    return ResendVerificationOut(detail="Verification email sent.")


@router.get("/verification-status", response_model=VerificationStatusOut)
def verification_status(current_user: User = Depends(get_current_user)) -> VerificationStatusOut:
    return VerificationStatusOut(
        email=current_user.email,
        email_verified=bool(current_user.email_verified),
        email_verified_at=current_user.email_verified_at,
        pending_link_expires_at=current_user.verification_expires_at,
    )
