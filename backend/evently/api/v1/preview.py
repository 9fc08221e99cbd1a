# backend/evently/api/v1/preview.py

"""
Shareable preview links for events that may not be published yet.

- GET    /events/{id}/preview-token  -> status only, never the token
- POST   /events/{id}/preview-token  -> issue (replaces any existing link)
- DELETE /events/{id}/preview-token  -> revoke
- GET    /preview/{token}            -> public read of the event page
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from evently.api.deps import get_owned_event
from evently.core.config import settings
from evently.core.errors import ErrorCode, http_error
from evently.core.rate_limit import token_lookup_rate_limit
from evently.core.tokens import generate_token_pair, hash_token
from evently.db.session import get_db
from evently.models import Event
from evently.services.links import (
    as_aware_utc,
    is_expired,
    preview_link,
    require_presented_token,
    utcnow,
)

logger = logging.getLogger("evently.preview")

router = APIRouter(prefix="/events/{event_id}/preview-token", tags=["preview"])
public_router = APIRouter(prefix="/preview", tags=["preview"])


class PreviewStatusOut(BaseModel):
    has_token: bool
    is_expired: bool
    expires_at: Optional[datetime] = None


class PreviewIssuedOut(BaseModel):
    token: str
    link: str
    expires_at: datetime


class PreviewRevokedOut(BaseModel):
    revoked: bool


class PreviewEventOut(BaseModel):
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
    is_preview: bool = True


@router.get("", response_model=PreviewStatusOut)
def preview_status(event: Event = Depends(get_owned_event)):
    has_token = event.preview_token_hash is not None
    return PreviewStatusOut(
        has_token=has_token,
        is_expired=has_token and is_expired(event.preview_token_expires_at),
        expires_at=as_aware_utc(event.preview_token_expires_at),
    )


@router.post("", response_model=PreviewIssuedOut)
def issue_preview_token(event: Event = Depends(get_owned_event), db: Session = Depends(get_db)):
    pair = generate_token_pair()
    expires_at = utcnow() + timedelta(days=int(settings.preview_token_expiry_days))

    event.preview_token_hash = pair.token_hash
    event.preview_token_expires_at = expires_at
    db.add(event)
    db.commit()

    logger.info("preview_token_issued event_id=%s", event.id)
    return PreviewIssuedOut(token=pair.token, link=preview_link(pair.token), expires_at=expires_at)


@router.delete("", response_model=PreviewRevokedOut)
def revoke_preview_token(event: Event = Depends(get_owned_event), db: Session = Depends(get_db)):
    event.preview_token_hash = None
    event.preview_token_expires_at = None
    db.add(event)
    db.commit()

    logger.info("preview_token_revoked event_id=%s", event.id)
    return PreviewRevokedOut(revoked=True)


@public_router.get(
    "/{token}",
    response_model=PreviewEventOut,
    dependencies=[Depends(token_lookup_rate_limit)],
)
def view_preview(token: str, db: Session = Depends(get_db)):
    raw = require_presented_token(
        token,
        missing_status=status.HTTP_404_NOT_FOUND,
        bad_status=status.HTTP_404_NOT_FOUND,
    )

    event = db.query(Event).filter(Event.preview_token_hash == hash_token(raw)).first()
    if event is None:
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.PREVIEW_NOT_FOUND, "Preview link not found.")

    if is_expired(event.preview_token_expires_at):
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.PREVIEW_EXPIRED, "This preview link has expired.")

    return PreviewEventOut(
        id=event.id,
        title=event.title,
        slug=event.slug,
        description=event.description,
        start_at=event.start_at,
        end_at=event.end_at,
        timezone=event.timezone,
        venue_name=event.venue_name,
        city=event.city,
        status=event.status,
        visibility=event.visibility,
    )
