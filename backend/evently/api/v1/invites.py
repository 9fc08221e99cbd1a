# backend/evently/api/v1/invites.py

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session

from evently.api.deps import get_owned_event
from evently.core.email import EmailSender, get_mailer
from evently.core.errors import ErrorCode, http_error
from evently.core.rate_limit import invites_rate_limit, token_lookup_rate_limit
from evently.db.session import get_db
from evently.models import Event, Invite
from evently.services.invites import InviteDraft, issue_invites, open_invite, reissue_invite
from evently.services.links import as_aware_utc, require_presented_token

router = APIRouter(prefix="/events/{event_id}/invites", tags=["invites"])
lookup_router = APIRouter(prefix="/invites", tags=["invites"])

InviteStatusLiteral = Literal["PENDING", "SENT", "OPENED", "RESPONDED", "BOUNCED", "EXPIRED"]


# ---------- Schemas ----------

class InviteIn(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=200)
    plus_ones_allowed: int = Field(default=0, ge=0, le=10)
    expires_at: Optional[datetime] = None


class BulkInviteIn(BaseModel):
    invites: List[InviteIn] = Field(..., min_length=1, max_length=100)
    send_immediately: bool = False


class InviteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    status: str
    plus_ones_allowed: int
    expires_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class IssuedInviteOut(InviteOut):
    # plaintext credential, returned exactly once at issuance
    token: str
    link: str


class BulkInviteOut(BaseModel):
    invites: List[IssuedInviteOut]
    sent: bool


class InviteListOut(BaseModel):
    items: List[InviteOut]
    total: int
    limit: int
    offset: int


class ExistingRsvpOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    response: str
    guest_name: str
    guest_count: int
    notes: Optional[str] = None
    responded_at: Optional[datetime] = None


class LookupInviteOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    status: str
    plus_ones_allowed: int
    has_responded: bool
    existing_rsvp: Optional[ExistingRsvpOut] = None


class LookupEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    description: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    timezone: str
    venue_name: Optional[str] = None
    city: Optional[str] = None
    status: str
    max_attendees: Optional[int] = None
    host_name: Optional[str] = None


class LookupOut(BaseModel):
    invite: LookupInviteOut
    event: LookupEventOut


# ---------- Helpers ----------

def _issued_out(inv: Invite, token: str, link: str) -> IssuedInviteOut:
    base = InviteOut.model_validate(inv).model_dump()
    base["expires_at"] = as_aware_utc(inv.expires_at)
    return IssuedInviteOut(**base, token=token, link=link)


def _get_invite(db: Session, event: Event, invite_id: int) -> Invite:
    inv = (
        db.query(Invite)
        .filter(Invite.id == invite_id, Invite.event_id == event.id)
        .first()
    )
    if inv is None:
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.INVITE_NOT_FOUND, "Invite not found.")
    return inv


# ---------- Organizer routes ----------

@router.post(
    "",
    response_model=BulkInviteOut,
    status_code=201,
    dependencies=[Depends(invites_rate_limit)],
)
def create_invites(
    payload: BulkInviteIn,
    event: Event = Depends(get_owned_event),
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
):
    drafts = [
        InviteDraft(
            email=str(i.email),
            name=i.name,
            plus_ones_allowed=i.plus_ones_allowed,
            expires_at=i.expires_at,
        )
        for i in payload.invites
    ]
    issued = issue_invites(db, event, drafts, send_immediately=payload.send_immediately, mailer=mailer)
    return BulkInviteOut(
        invites=[_issued_out(item.invite, item.token, item.link) for item in issued],
        sent=payload.send_immediately,
    )


@router.get("", response_model=InviteListOut)
def list_invites(
    status_filter: Optional[InviteStatusLiteral] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    event: Event = Depends(get_owned_event),
    db: Session = Depends(get_db),
):
    q = db.query(Invite).filter(Invite.event_id == event.id)
    if status_filter:
        q = q.filter(Invite.status == status_filter)

    total = q.count()
    items = q.order_by(Invite.created_at.desc(), Invite.id.desc()).offset(offset).limit(limit).all()

    return InviteListOut(
        items=[InviteOut.model_validate(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/{invite_id}/resend",
    response_model=IssuedInviteOut,
    dependencies=[Depends(invites_rate_limit)],
)
def resend_invite(
    invite_id: int,
    event: Event = Depends(get_owned_event),
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_mailer),
):
    inv = _get_invite(db, event, invite_id)
    issued = reissue_invite(db, event, inv, mailer)
    return _issued_out(issued.invite, issued.token, issued.link)


@router.delete("/{invite_id}", status_code=204)
def delete_invite(
    invite_id: int,
    event: Event = Depends(get_owned_event),
    db: Session = Depends(get_db),
):
    inv = _get_invite(db, event, invite_id)
    db.delete(inv)
    db.commit()
    return Response(status_code=204)


# ---------- Public lookup ----------

@lookup_router.get(
    "/lookup",
    response_model=LookupOut,
    dependencies=[Depends(token_lookup_rate_limit)],
)
def lookup_invite(
    token: Optional[str] = Query(default=None, max_length=512),
    db: Session = Depends(get_db),
):
    raw = require_presented_token(token)
    inv = open_invite(db, raw)
    event = inv.event
    rsvp = inv.rsvp

    return LookupOut(
        invite=LookupInviteOut(
            id=inv.id,
            email=inv.email,
            name=inv.name,
            status=inv.status,
            plus_ones_allowed=inv.plus_ones_allowed,
            has_responded=rsvp is not None,
            existing_rsvp=ExistingRsvpOut.model_validate(rsvp) if rsvp is not None else None,
        ),
        event=LookupEventOut(
            **{k: getattr(event, k) for k in LookupEventOut.model_fields if k != "host_name"},
            host_name=event.owner.name if event.owner else None,
        ),
    )
