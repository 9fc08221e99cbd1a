# backend/tests/test_preview.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import signup
from evently.core.tokens import hash_token
from evently.models import Event


def _issue(client, headers, event_id):
    r = client.post(f"/api/v1/events/{event_id}/preview-token", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_issue_and_view_preview(client, auth_headers, event_id, SessionLocal):
    issued = _issue(client, auth_headers, event_id)
    assert issued["link"].endswith(f"/preview/{issued['token']}")

    db = SessionLocal()
    try:
        ev = db.get(Event, event_id)
        assert ev.preview_token_hash == hash_token(issued["token"])
    finally:
        db.close()

    # draft events are viewable through the preview link only
    r = client.get(f"/api/v1/preview/{issued['token']}")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["id"] == event_id
    assert body["status"] == "DRAFT"
    assert body["is_preview"] is True


def test_status_never_exposes_token(client, auth_headers, event_id):
    before = client.get(f"/api/v1/events/{event_id}/preview-token", headers=auth_headers).json()
    assert before == {"has_token": False, "is_expired": False, "expires_at": None}

    _issue(client, auth_headers, event_id)
    after = client.get(f"/api/v1/events/{event_id}/preview-token", headers=auth_headers).json()
    assert after["has_token"] is True
    assert after["is_expired"] is False
    assert "token" not in after


def test_reissue_invalidates_previous_link(client, auth_headers, event_id):
    first = _issue(client, auth_headers, event_id)
    second = _issue(client, auth_headers, event_id)
    assert first["token"] != second["token"]

    assert client.get(f"/api/v1/preview/{first['token']}").status_code == 404
    assert client.get(f"/api/v1/preview/{second['token']}").status_code == 200


def test_revoke(client, auth_headers, event_id):
    issued = _issue(client, auth_headers, event_id)

    r = client.delete(f"/api/v1/events/{event_id}/preview-token", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"revoked": True}

    r = client.get(f"/api/v1/preview/{issued['token']}")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "PREVIEW_NOT_FOUND"


def test_expired_preview(client, auth_headers, event_id, SessionLocal):
    issued = _issue(client, auth_headers, event_id)

    db = SessionLocal()
    try:
        ev = db.get(Event, event_id)
        ev.preview_token_expires_at = datetime.now(timezone.utc) - timedelta(seconds=5)
        db.commit()
    finally:
        db.close()

    r = client.get(f"/api/v1/preview/{issued['token']}")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "PREVIEW_EXPIRED"

    status = client.get(f"/api/v1/events/{event_id}/preview-token", headers=auth_headers).json()
    assert status["has_token"] is True
    assert status["is_expired"] is True


def test_short_and_unknown_preview_tokens_are_not_found(client):
    r = client.get("/api/v1/preview/abc")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "BAD_TOKEN"

    r = client.get(f"/api/v1/preview/{'z' * 43}")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "PREVIEW_NOT_FOUND"


def test_preview_token_is_owner_only(client, auth_headers, event_id):
    other = signup(client, email="nosy@example.com")
    r = client.post(f"/api/v1/events/{event_id}/preview-token", headers=other)
    assert r.status_code == 404

    r = client.post(f"/api/v1/events/{event_id}/preview-token")
    assert r.status_code == 401
