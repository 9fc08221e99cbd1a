# backend/evently/api/v1/analytics.py
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from evently.api.deps import get_owned_event
from evently.db.session import get_db
from evently.models import Event, Invite, Rsvp
from evently.services.analytics import build_analytics_snapshot, build_funnel_data, build_velocity

router = APIRouter(prefix="/events/{event_id}/analytics", tags=["analytics"])


class DailyCountOut(BaseModel):
    date: str
    count: int
    cumulative: int


class MomentumOut(BaseModel):
    current_7_days: int
    previous_7_days: int
    trend: Literal["accelerating", "steady", "slowing"]
    percent_change: int


class VelocityOut(BaseModel):
    daily: List[DailyCountOut]
    momentum: MomentumOut
    total_rsvps: int
    first_rsvp_date: Optional[str] = None
    last_rsvp_date: Optional[str] = None


class SnapshotOut(BaseModel):
    total_yes: int
    total_maybe: int
    total_no: int
    total_responses: int
    total_invites: int
    invites_opened: int
    response_rate: int
    open_rate: int
    expected_attendance: int
    days_until_event: Optional[int] = None
    event_date: Optional[str] = None
    last_updated: str


class FunnelStageOut(BaseModel):
    name: str
    label: str
    count: int
    percentage: int


class FunnelDropoffOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_stage: str = Field(alias="from")
    to_stage: str = Field(alias="to")
    lost: int
    rate: int


class FunnelOut(BaseModel):
    stages: List[FunnelStageOut]
    dropoffs: List[FunnelDropoffOut]
    total_invited: int
    total_responded: int
    overall_conversion_rate: int


@router.get("/velocity", response_model=VelocityOut)
def rsvp_velocity(
    lookback_days: int = Query(default=30, ge=7, le=365),
    event: Event = Depends(get_owned_event),
    db: Session = Depends(get_db),
):
    """
    Daily RSVP counts over the lookback window plus 7-day momentum.
    """
    rows = (
        db.query(Rsvp.responded_at)
        .filter(Rsvp.event_id == event.id)
        .order_by(Rsvp.responded_at.asc())
        .all()
    )
    dates: List[datetime] = [r[0] for r in rows if r[0] is not None]
    return build_velocity(dates, lookback_days=lookback_days)


def _invite_counts(db: Session, event_id: int) -> tuple[int, int]:
    total = db.query(func.count(Invite.id)).filter(Invite.event_id == event_id).scalar() or 0
    opened = (
        db.query(func.count(Invite.id))
        .filter(Invite.event_id == event_id, Invite.opened_at.isnot(None))
        .scalar()
        or 0
    )
    return int(total), int(opened)


@router.get("/snapshot", response_model=SnapshotOut)
def analytics_snapshot(event: Event = Depends(get_owned_event), db: Session = Depends(get_db)):
    """
    Headline numbers for the event dashboard: response counts, response and
    open rates, expected attendance and days to go.
    """
    rows = (
        db.query(Rsvp.response, func.count(Rsvp.id), func.coalesce(func.sum(Rsvp.guest_count), 0))
        .filter(Rsvp.event_id == event.id)
        .group_by(Rsvp.response)
        .all()
    )
    rsvp_stats = {resp: {"count": int(n), "guests": int(guests)} for resp, n, guests in rows}

    total, opened = _invite_counts(db, event.id)
    return build_analytics_snapshot(rsvp_stats, {"total": total, "opened": opened}, event.start_at)


@router.get("/funnel", response_model=FunnelOut)
def analytics_funnel(event: Event = Depends(get_owned_event), db: Session = Depends(get_db)):
    total, opened = _invite_counts(db, event.id)
    responded = db.query(func.count(Rsvp.id)).filter(Rsvp.event_id == event.id).scalar() or 0
    return build_funnel_data(total, opened, int(responded))
