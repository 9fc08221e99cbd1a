# backend/evently/api/v1/rsvp.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from fastapi import APIRouter, Body, Depends
from fastapi.exceptions import RequestValidationError
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    EmailStr,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from sqlalchemy.orm import Session

from evently.core.email import EmailSender, get_mailer
from evently.core.rate_limit import rsvp_rate_limit
from evently.db.session import get_db
from evently.services import rsvp as rsvp_service
from evently.services.links import require_presented_token

router = APIRouter(prefix="/rsvp", tags=["rsvp"])

ResponseLiteral = Literal["YES", "NO", "MAYBE"]

# Guest forms send `inviteToken`; API clients send `token`.
TOKEN_KEYS = ("token", "inviteToken")


# ---------- Schemas ----------

class _GuestFields(BaseModel):
    model_config = ConfigDict(extra="forbid")

    response: ResponseLiteral
    guest_name: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("guest_name", mode="before")
    @classmethod
    def strip_guest_name(cls, v):
        """Trim before the length check so a blank name is rejected."""
        if isinstance(v, str):
            return v.strip()
        return v


class InviteRsvpIn(_GuestFields):
    token: str = Field(..., max_length=512, validation_alias=AliasChoices(*TOKEN_KEYS))
    guest_email: Optional[EmailStr] = None
    guest_count: int = Field(default=1, ge=1, le=11)


class PublicRsvpIn(_GuestFields):
    event_id: int
    guest_email: EmailStr
    guest_count: int = Field(default=1, ge=1, le=5)


def _rsvp_kind(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        present = [k for k in TOKEN_KEYS if k in value]
        if len(present) > 1:
            return None  # ambiguous credential, no variant matches
        return "invite" if present else "public"
    return "invite" if isinstance(value, InviteRsvpIn) else "public"


RsvpIn = Annotated[
    Union[
        Annotated[InviteRsvpIn, Tag("invite")],
        Annotated[PublicRsvpIn, Tag("public")],
    ],
    Discriminator(_rsvp_kind),
]

_rsvp_adapter: TypeAdapter[Any] = TypeAdapter(RsvpIn)


class RsvpOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    response: str
    guest_name: str
    guest_count: int
    responded_at: Optional[datetime] = None


class RsvpEventOut(BaseModel):
    id: int
    title: str


class RsvpResultOut(BaseModel):
    rsvp: RsvpOut
    event: RsvpEventOut
    message: str


def decode_rsvp(body: Any) -> Union[InviteRsvpIn, PublicRsvpIn]:
    """
    Decode the request body into exactly one RSVP variant.
    Unknown or mixed shapes are rejected (422), never partially accepted.
    """
    try:
        return _rsvp_adapter.validate_python(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


# ---------- Routes ----------

@router.post(
    "",
    response_model=RsvpResultOut,
    dependencies=[Depends(rsvp_rate_limit)],
)
def submit_rsvp(
    body: Any = Body(...),
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
):
    payload = decode_rsvp(body)

    submission = rsvp_service.RsvpSubmission(
        response=payload.response,
        guest_name=payload.guest_name,
        guest_email=str(payload.guest_email) if payload.guest_email else None,
        guest_count=payload.guest_count,
        notes=payload.notes,
    )

    if isinstance(payload, InviteRsvpIn):
        token = require_presented_token(payload.token)
        rsvp = rsvp_service.submit_invite_rsvp(db, token, submission, mailer)
    else:
        rsvp = rsvp_service.submit_public_rsvp(db, payload.event_id, submission, mailer)

    event = rsvp.event
    return RsvpResultOut(
        rsvp=RsvpOut.model_validate(rsvp),
        event=RsvpEventOut(id=event.id, title=event.title),
        message=rsvp_service.RESPONSE_MESSAGES[rsvp.response],
    )
