# backend/evently/api/v1/auth.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from evently.core.email import EmailSender, get_mailer
from evently.core.errors import ErrorCode, http_error
from evently.core.rate_limit import auth_rate_limit
from evently.core.security import (
    create_access_token,
    get_current_user,
    normalize_email,
    pwd_context,
)
from evently.db.session import get_db
from evently.models import User
from evently.services.verification import send_verification_email

logger = logging.getLogger("evently")

router = APIRouter(prefix="/auth", tags=["auth"])


# === Schemas ===

class SignupIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., max_length=256)
    name: Optional[str] = Field(default=None, max_length=200)


class Token(BaseModel):
    access_token: str
    token_type: str


class MeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    email_verified: bool
    email_verified_at: Optional[datetime] = None


def _password_ok(pw: str) -> bool:
    return len(pw or "") >= 8


def _validate_email(email: str) -> None:
    e = (email or "").strip()
    if not e or "@" not in e:
        raise http_error(status.HTTP_400_BAD_REQUEST, "BAD_EMAIL", "Invalid email address.")

    try:
        TypeAdapter(EmailStr).validate_python(e)
    except ValueError:
        raise http_error(status.HTTP_400_BAD_REQUEST, "BAD_EMAIL", "Invalid email address.")


# === Routes ===

@router.post(
    "/signup",
    response_model=Token,
    dependencies=[Depends(auth_rate_limit)],
)
def signup(
    payload: SignupIn,
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
) -> Token:
    """
    Organizer signup. Sends an email-verification link straight away.
    """
    _validate_email(payload.email)
    email_norm = normalize_email(payload.email)

    if not _password_ok(payload.password):
        raise http_error(status.HTTP_400_BAD_REQUEST, ErrorCode.WEAK_PASSWORD, "Password must be at least 8 characters.")

    if db.query(User).filter(User.email == email_norm).first():
        raise http_error(
            status.HTTP_409_CONFLICT,
            ErrorCode.EMAIL_ALREADY_REGISTERED,
            "Email already registered. Please log in.",
        )

    user = User(
        email=email_norm,
        hashed_password=pwd_context.hash(payload.password),
        name=(payload.name or "").strip() or None,
        is_active=True,
        email_verified=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise http_error(
            status.HTTP_409_CONFLICT,
            ErrorCode.EMAIL_ALREADY_REGISTERED,
            "Email already registered. Please log in.",
        )
    db.refresh(user)

    send_verification_email(db, user, mailer)
    logger.info("signup user_id=%s", user.id)

    return Token(access_token=create_access_token({"sub": user.email}), token_type="bearer")


@router.post(
    "/login",
    response_model=Token,
    dependencies=[Depends(auth_rate_limit)],
)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
) -> Token:
    email_norm = normalize_email(form_data.username)
    user = db.query(User).filter(User.email == email_norm).first()

    if not user or not pwd_context.verify(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "INVALID_CREDENTIALS", "message": "Incorrect email or password."},
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not bool(user.is_active):
        raise http_error(status.HTTP_403_FORBIDDEN, ErrorCode.USER_DISABLED, "User access is disabled.")

    return Token(access_token=create_access_token({"sub": user.email}), token_type="bearer")


@router.get("/me", response_model=MeOut)
def me(current_user: User = Depends(get_current_user)) -> User:
    return current_user
