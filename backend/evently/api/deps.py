"""
Shared API dependencies.

Event ownership is the only authorization rule organizers need: every
/events/{event_id}/... route loads the event through `get_owned_event`, so
another organizer's event is indistinguishable from a missing one.
"""

from __future__ import annotations

from fastapi import Depends, status
from sqlalchemy.orm import Session

from evently.core.errors import ErrorCode, http_error
from evently.core.security import get_current_user
from evently.db.session import get_db
from evently.models import Event, User


def get_owned_event(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Event:
    event = (
        db.query(Event)
        .filter(Event.id == event_id, Event.owner_id == current_user.id)
        .first()
    )
    if event is None:
        raise http_error(status.HTTP_404_NOT_FOUND, ErrorCode.EVENT_NOT_FOUND, "Event not found.")
    return event
