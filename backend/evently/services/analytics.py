# backend/evently/services/analytics.py
"""
Organizer analytics: RSVP velocity, the headline snapshot and the
invite funnel. Pure functions; the route handlers feed them counts
and timestamps from the database.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

TREND_THRESHOLD_PCT = 10


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def determine_trend(percent_change: int) -> str:
    if percent_change > TREND_THRESHOLD_PCT:
        return "accelerating"
    if percent_change < -TREND_THRESHOLD_PCT:
        return "slowing"
    return "steady"


def calculate_momentum(current_7_days: int, previous_7_days: int) -> Dict[str, Any]:
    percent_change = 0
    if previous_7_days > 0:
        ratio = (current_7_days - previous_7_days) / previous_7_days * 100
        percent_change = math.floor(ratio + 0.5)
    elif current_7_days > 0:
        percent_change = 100

    return {
        "current_7_days": current_7_days,
        "previous_7_days": previous_7_days,
        "trend": determine_trend(percent_change),
        "percent_change": percent_change,
    }


def build_daily_counts(dates: Iterable[datetime], start: date, end: date) -> List[Dict[str, Any]]:
    counts: Dict[date, int] = {}
    for dt in dates:
        day = _as_utc(dt).date()
        counts[day] = counts.get(day, 0) + 1

    daily: List[Dict[str, Any]] = []
    cumulative = 0
    current = start
    while current <= end:
        count = counts.get(current, 0)
        cumulative += count
        daily.append({"date": current.isoformat(), "count": count, "cumulative": cumulative})
        current += timedelta(days=1)

    return daily


def build_velocity(
    dates: Iterable[datetime],
    reference: Optional[datetime] = None,
    lookback_days: int = 30,
) -> Dict[str, Any]:
    sorted_dates = sorted(_as_utc(d) for d in dates)

    if not sorted_dates:
        return {
            "daily": [],
            "momentum": calculate_momentum(0, 0),
            "total_rsvps": 0,
            "first_rsvp_date": None,
            "last_rsvp_date": None,
        }

    ref = _as_utc(reference) if reference is not None else datetime.now(timezone.utc)

    end_day = ref.date()
    start_day = end_day - timedelta(days=lookback_days - 1)
    window_start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    in_window = [d for d in sorted_dates if d >= window_start]
    daily = build_daily_counts(in_window, start_day, end_day)

    seven_days_ago = ref - timedelta(days=7)
    fourteen_days_ago = ref - timedelta(days=14)

    current_7 = 0
    previous_7 = 0
    for d in sorted_dates:
        if seven_days_ago < d <= ref:
            current_7 += 1
        elif fourteen_days_ago < d <= seven_days_ago:
            previous_7 += 1

    return {
        "daily": daily,
        "momentum": calculate_momentum(current_7, previous_7),
        "total_rsvps": len(sorted_dates),
        "first_rsvp_date": sorted_dates[0].date().isoformat(),
        "last_rsvp_date": sorted_dates[-1].date().isoformat(),
    }


# ---------- Snapshot ----------

def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def calculate_response_rate(total_responses: int, total_invites: int) -> int:
    return _percent(total_responses, total_invites)


def calculate_open_rate(invites_opened: int, total_invites: int) -> int:
    return _percent(invites_opened, total_invites)


def calculate_days_until_event(event_date: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until the event, rounded up. None once it has started."""
    if event_date is None:
        return None
    ref = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    seconds = (_as_utc(event_date) - ref).total_seconds()
    if seconds <= 0:
        return None
    return math.ceil(seconds / 86400)


def build_analytics_snapshot(
    rsvp_stats: Dict[str, Dict[str, int]],
    invite_stats: Dict[str, int],
    event_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    rsvp_stats maps YES/NO/MAYBE to {"count", "guests"};
    invite_stats carries {"total", "opened"}.
    """
    ref = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    empty = {"count": 0, "guests": 0}

    yes = rsvp_stats.get("YES", empty)
    maybe = rsvp_stats.get("MAYBE", empty)
    no = rsvp_stats.get("NO", empty)
    total_responses = yes["count"] + maybe["count"] + no["count"]
    total_invites = invite_stats.get("total", 0)
    opened = invite_stats.get("opened", 0)

    return {
        "total_yes": yes["count"],
        "total_maybe": maybe["count"],
        "total_no": no["count"],
        "total_responses": total_responses,
        "total_invites": total_invites,
        "invites_opened": opened,
        "response_rate": calculate_response_rate(total_responses, total_invites),
        "open_rate": calculate_open_rate(opened, total_invites),
        "expected_attendance": yes["guests"],
        "days_until_event": calculate_days_until_event(event_date, ref),
        "event_date": _as_utc(event_date).isoformat() if event_date is not None else None,
        "last_updated": ref.isoformat(),
    }


# ---------- Funnel ----------

FUNNEL_STAGE_LABELS = {
    "invited": "Invited",
    "opened": "Opened Invite",
    "responded": "Responded",
}


def calculate_dropoff(from_count: int, to_count: int, from_name: str, to_name: str) -> Dict[str, Any]:
    lost = max(0, from_count - to_count)
    return {
        "from": from_name,
        "to": to_name,
        "lost": lost,
        "rate": _percent(lost, from_count),
    }


def build_funnel_data(total_invited: int, total_opened: int, total_responded: int) -> Dict[str, Any]:
    """Invited -> Opened -> Responded, percentages relative to invited."""
    stages = [
        {
            "name": "invited",
            "label": FUNNEL_STAGE_LABELS["invited"],
            "count": total_invited,
            "percentage": 100,
        },
        {
            "name": "opened",
            "label": FUNNEL_STAGE_LABELS["opened"],
            "count": total_opened,
            "percentage": _percent(total_opened, total_invited),
        },
        {
            "name": "responded",
            "label": FUNNEL_STAGE_LABELS["responded"],
            "count": total_responded,
            "percentage": _percent(total_responded, total_invited),
        },
    ]

    return {
        "stages": stages,
        "dropoffs": [
            calculate_dropoff(total_invited, total_opened, "invited", "opened"),
            calculate_dropoff(total_opened, total_responded, "opened", "responded"),
        ],
        "total_invited": total_invited,
        "total_responded": total_responded,
        "overall_conversion_rate": _percent(total_responded, total_invited),
    }
