# backend/tests/test_analytics_snapshot.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import invite_guest, signup
from evently.services.analytics import (
    build_analytics_snapshot,
    build_funnel_data,
    calculate_days_until_event,
    calculate_dropoff,
    calculate_open_rate,
    calculate_response_rate,
)

NOW = datetime(2030, 5, 20, 12, 0, tzinfo=timezone.utc)


def test_rates_round_half_up_and_handle_zero_invites():
    assert calculate_response_rate(0, 0) == 0
    assert calculate_open_rate(5, 0) == 0
    assert calculate_response_rate(1, 3) == 33
    assert calculate_response_rate(2, 3) == 67
    assert calculate_open_rate(1, 8) == 13
    assert calculate_open_rate(4, 4) == 100


def test_days_until_event():
    assert calculate_days_until_event(NOW + timedelta(days=1), NOW) == 1
    assert calculate_days_until_event(NOW + timedelta(days=1, seconds=1), NOW) == 2
    assert calculate_days_until_event(NOW + timedelta(minutes=5), NOW) == 1
    assert calculate_days_until_event(NOW, NOW) is None
    assert calculate_days_until_event(NOW - timedelta(days=3), NOW) is None
    assert calculate_days_until_event(None, NOW) is None
    # naive datetimes are read as UTC
    assert calculate_days_until_event(datetime(2030, 5, 22, 12, 0), NOW) == 2


def test_snapshot_from_raw_stats():
    snap = build_analytics_snapshot(
        {"YES": {"count": 3, "guests": 7}, "NO": {"count": 1, "guests": 1}},
        {"total": 8, "opened": 6},
        datetime(2030, 6, 1, 18, 0, tzinfo=timezone.utc),
        now=NOW,
    )
    assert snap == {
        "total_yes": 3,
        "total_maybe": 0,
        "total_no": 1,
        "total_responses": 4,
        "total_invites": 8,
        "invites_opened": 6,
        "response_rate": 50,
        "open_rate": 75,
        "expected_attendance": 7,
        "days_until_event": 13,
        "event_date": "2030-06-01T18:00:00+00:00",
        "last_updated": NOW.isoformat(),
    }


def test_snapshot_without_event_date():
    snap = build_analytics_snapshot({}, {"total": 0, "opened": 0}, None, now=NOW)
    assert snap["days_until_event"] is None
    assert snap["event_date"] is None
    assert snap["response_rate"] == 0


def test_dropoff():
    assert calculate_dropoff(10, 4, "invited", "opened") == {"from": "invited", "to": "opened", "lost": 6, "rate": 60}
    assert calculate_dropoff(0, 0, "invited", "opened")["rate"] == 0
    # more responses than opens (public RSVPs) never reports a negative loss
    assert calculate_dropoff(2, 5, "opened", "responded") == {"from": "opened", "to": "responded", "lost": 0, "rate": 0}


def test_funnel_stages():
    funnel = build_funnel_data(20, 15, 6)
    assert [(s["name"], s["count"], s["percentage"]) for s in funnel["stages"]] == [
        ("invited", 20, 100),
        ("opened", 15, 75),
        ("responded", 6, 30),
    ]
    assert funnel["stages"][1]["label"] == "Opened Invite"
    assert [d["rate"] for d in funnel["dropoffs"]] == [25, 60]
    assert funnel["overall_conversion_rate"] == 30

    empty = build_funnel_data(0, 0, 0)
    assert empty["stages"][0]["percentage"] == 100
    assert empty["overall_conversion_rate"] == 0


# --- Routes ----------------------------------------------------------------

def _seed(client, headers, event_id):
    a = invite_guest(client, headers, event_id, email="a@example.com", plus_ones_allowed=1)
    b = invite_guest(client, headers, event_id, email="b@example.com")
    c = invite_guest(client, headers, event_id, email="c@example.com")
    invite_guest(client, headers, event_id, email="d@example.com")

    for issued in (a, b, c):
        assert client.get("/api/v1/invites/lookup", params={"token": issued["token"]}).status_code == 200

    client.post("/api/v1/rsvp", json={"token": a["token"], "response": "YES", "guest_name": "A", "guest_count": 2})
    client.post("/api/v1/rsvp", json={"token": b["token"], "response": "NO", "guest_name": "B"})


def test_snapshot_route(client, auth_headers, event_id):
    _seed(client, auth_headers, event_id)

    r = client.get(f"/api/v1/events/{event_id}/analytics/snapshot", headers=auth_headers)
    assert r.status_code == 200, r.text
    snap = r.json()
    assert snap["total_invites"] == 4
    assert snap["invites_opened"] == 3
    assert snap["total_yes"] == 1
    assert snap["total_no"] == 1
    assert snap["total_responses"] == 2
    assert snap["response_rate"] == 50
    assert snap["open_rate"] == 75
    assert snap["expected_attendance"] == 2
    assert snap["days_until_event"] >= 1
    assert snap["event_date"].startswith("2030-06-01T18:00:00")


def test_funnel_route(client, auth_headers, event_id):
    _seed(client, auth_headers, event_id)

    r = client.get(f"/api/v1/events/{event_id}/analytics/funnel", headers=auth_headers)
    assert r.status_code == 200, r.text
    funnel = r.json()
    assert [s["count"] for s in funnel["stages"]] == [4, 3, 2]
    assert funnel["dropoffs"][0] == {"from": "invited", "to": "opened", "lost": 1, "rate": 25}
    assert funnel["dropoffs"][1] == {"from": "opened", "to": "responded", "lost": 1, "rate": 33}
    assert funnel["overall_conversion_rate"] == 50


def test_analytics_routes_are_owner_only(client, event_id):
    other = signup(client, email="nosy@example.com")
    for path in ("snapshot", "funnel"):
        assert client.get(f"/api/v1/events/{event_id}/analytics/{path}", headers=other).status_code == 404
        assert client.get(f"/api/v1/events/{event_id}/analytics/{path}").status_code == 401
