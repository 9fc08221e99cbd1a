# backend/evently/api/v1/events.py
from __future__ import annotations

import re
import secrets
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import func
from sqlalchemy.orm import Session

from evently.api.deps import get_owned_event
from evently.core.errors import http_error
from evently.core.security import get_current_user
from evently.db.session import get_db
from evently.models import Event, EventStatus, Invite, Rsvp, RsvpResponse, User
from evently.services.links import as_aware_utc

router = APIRouter(prefix="/events", tags=["events"])

StatusLiteral = Literal["DRAFT", "PUBLISHED", "CANCELLED", "COMPLETED"]
VisibilityLiteral = Literal["PUBLIC", "UNLISTED", "PRIVATE"]

NON_NULLABLE_FIELDS = {"title", "timezone", "status", "visibility"}


# ---------- Schemas ----------

def _strip(v):
    # min_length applies to the trimmed value
    return v.strip() if isinstance(v, str) else v


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    timezone: str = Field(default="UTC", max_length=64)
    venue_name: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=120)
    visibility: VisibilityLiteral = "PRIVATE"
    max_attendees: Optional[int] = Field(default=None, ge=1, le=100000)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return _strip(v)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    timezone: Optional[str] = Field(default=None, max_length=64)
    venue_name: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=120)
    status: Optional[StatusLiteral] = None
    visibility: Optional[VisibilityLiteral] = None
    max_attendees: Optional[int] = Field(default=None, ge=1, le=100000)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return _strip(v)


class EventOut(BaseModel):
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
    visibility: str
    max_attendees: Optional[int] = None
    created_at: Optional[datetime] = None


class EventStatsOut(BaseModel):
    total_invites: int
    total_responses: int
    yes: int
    no: int
    maybe: int
    confirmed_guests: int


class EventDetailOut(EventOut):
    stats: EventStatsOut


class RsvpInviteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None


class RsvpRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    response: str
    guest_name: str
    guest_email: Optional[str] = None
    guest_count: int
    notes: Optional[str] = None
    responded_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    invite: Optional[RsvpInviteOut] = None


class ResponseTallyOut(BaseModel):
    count: int = 0
    total_guests: int = 0


class RsvpTalliesOut(BaseModel):
    yes: ResponseTallyOut
    no: ResponseTallyOut
    maybe: ResponseTallyOut


class PaginationOut(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class RsvpListOut(BaseModel):
    rsvps: List[RsvpRowOut]
    stats: RsvpTalliesOut
    pagination: PaginationOut


# ---------- Helpers ----------

def _slugify(title: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", (title or "").lower()).strip("-")[:60] or "event"
    return f"{base}-{secrets.token_hex(3)}"


def _validate_window(start_at: Optional[datetime], end_at: Optional[datetime]) -> None:
    start_at, end_at = as_aware_utc(start_at), as_aware_utc(end_at)
    if start_at and end_at and end_at < start_at:
        raise http_error(status.HTTP_400_BAD_REQUEST, "EVENT_BAD_DATES", "end_at must be after start_at.")


def _stats(db: Session, event_id: int) -> EventStatsOut:
    total_invites = db.query(func.count(Invite.id)).filter(Invite.event_id == event_id).scalar() or 0

    rows = (
        db.query(Rsvp.response, func.count(Rsvp.id), func.coalesce(func.sum(Rsvp.guest_count), 0))
        .filter(Rsvp.event_id == event_id)
        .group_by(Rsvp.response)
        .all()
    )
    counts = {resp: (int(n), int(guests)) for resp, n, guests in rows}

    yes = counts.get(RsvpResponse.YES.value, (0, 0))
    no = counts.get(RsvpResponse.NO.value, (0, 0))
    maybe = counts.get(RsvpResponse.MAYBE.value, (0, 0))

    return EventStatsOut(
        total_invites=int(total_invites),
        total_responses=yes[0] + no[0] + maybe[0],
        yes=yes[0],
        no=no[0],
        maybe=maybe[0],
        confirmed_guests=yes[1],
    )


# ---------- Routes ----------

@router.post("", response_model=EventOut, status_code=201)
def create_event(
    payload: EventCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _validate_window(payload.start_at, payload.end_at)

    ev = Event(
        owner_id=current_user.id,
        title=payload.title.strip(),
        slug=_slugify(payload.title),
        description=payload.description,
        start_at=payload.start_at,
        end_at=payload.end_at,
        timezone=payload.timezone or "UTC",
        venue_name=payload.venue_name,
        city=payload.city,
        status=EventStatus.DRAFT.value,
        visibility=payload.visibility,
        max_attendees=payload.max_attendees,
    )
    db.add(ev)
    db.commit()
    db.refresh(ev)
    return ev


@router.get("", response_model=List[EventOut])
def list_events(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(Event)
        .filter(Event.owner_id == current_user.id)
        .order_by(Event.created_at.desc(), Event.id.desc())
        .all()
    )


@router.get("/{event_id}", response_model=EventDetailOut)
def get_event(event: Event = Depends(get_owned_event), db: Session = Depends(get_db)):
    out = EventOut.model_validate(event).model_dump()
    return EventDetailOut(**out, stats=_stats(db, event.id))


@router.patch("/{event_id}", response_model=EventOut)
def update_event(
    payload: EventUpdate,
    event: Event = Depends(get_owned_event),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    _validate_window(changes.get("start_at", event.start_at), changes.get("end_at", event.end_at))

    for field, value in changes.items():
        if value is None and field in NON_NULLABLE_FIELDS:
            continue
        if field == "title":
            value = value.strip()
        setattr(event, field, value)

    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@router.get("/{event_id}/rsvps", response_model=RsvpListOut)
def list_rsvps(
    response: Optional[Literal["YES", "NO", "MAYBE"]] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    event: Event = Depends(get_owned_event),
    db: Session = Depends(get_db),
):
    """
    Guest responses, newest first. `response` filters the page; the
    tallies always cover every RSVP for the event.
    """
    q = db.query(Rsvp).filter(Rsvp.event_id == event.id)
    if response:
        q = q.filter(Rsvp.response == response)

    total = q.count()
    rows = q.order_by(Rsvp.responded_at.desc(), Rsvp.id.desc()).offset(offset).limit(limit).all()

    grouped = (
        db.query(Rsvp.response, func.count(Rsvp.id), func.coalesce(func.sum(Rsvp.guest_count), 0))
        .filter(Rsvp.event_id == event.id)
        .group_by(Rsvp.response)
        .all()
    )
    tallies = {resp: ResponseTallyOut(count=int(n), total_guests=int(guests)) for resp, n, guests in grouped}

    return RsvpListOut(
        rsvps=[RsvpRowOut.model_validate(r) for r in rows],
        stats=RsvpTalliesOut(
            yes=tallies.get(RsvpResponse.YES.value, ResponseTallyOut()),
            no=tallies.get(RsvpResponse.NO.value, ResponseTallyOut()),
            maybe=tallies.get(RsvpResponse.MAYBE.value, ResponseTallyOut()),
        ),
        pagination=PaginationOut(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(rows) < total,
        ),
    )
