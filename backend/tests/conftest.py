# backend/tests/conftest.py
from __future__ import annotations

import re
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from evently.core.email import EmailResult, get_mailer
from evently.core.rate_limit import reset_all_limiters
from evently.db.base import Base
from evently.db.session import get_db
from evently.main import app
import evently.models  # noqa: F401  (registers tables)


class FakeMailer:
    """Captures outbound email instead of calling a provider."""

    def __init__(self):
        self.sent: List[dict] = []
        self.fail = False

    def send(self, *, to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> EmailResult:
        message_id = f"msg-{len(self.sent) + 1}"
        self.sent.append(
            {
                "to": to_email,
                "subject": subject,
                "text": text_body,
                "html": html_body,
                "message_id": message_id,
            }
        )
        if self.fail:
            return EmailResult(message_id=message_id, delivered=False, error="provider down")
        return EmailResult(message_id=message_id, delivered=True)

    def last_to(self, email: str) -> dict:
        for msg in reversed(self.sent):
            if msg["to"] == email:
                return msg
        raise AssertionError(f"No email sent to {email}")


def extract_token(text: str, path: str) -> str:
    """Pull the plaintext token out of an emailed link like .../rsvp/<token>."""
    m = re.search(rf"/{path}/([A-Za-z0-9_\-]+)", text)
    assert m, f"Could not find a /{path}/ link in email body:\n{text}"
    return m.group(1)


# --- Fixtures --------------------------------------------------------------

@pytest.fixture()
def SessionLocal():
    """
    Shared in-memory SQLite. StaticPool keeps one connection so every
    request-scoped session sees the same database.
    """
    engine = create_engine(
        "sqlite+pysqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture()
def client(SessionLocal, mailer):
    def _override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    reset_all_limiters()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
    reset_all_limiters()


def signup(client: TestClient, email: str = "host@example.com", password: str = "correct-horse", name: str = "Hana Host") -> dict:
    r = client.post("/api/v1/auth/signup", json={"email": email, "password": password, "name": name})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture()
def auth_headers(client):
    return signup(client)


@pytest.fixture()
def event_id(client, auth_headers):
    r = client.post(
        "/api/v1/events",
        json={
            "title": "Summer Garden Party",
            "start_at": "2030-06-01T18:00:00Z",
            "end_at": "2030-06-01T23:00:00Z",
            "venue_name": "The Orchard",
            "city": "Lisbon",
        },
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def invite_guest(client: TestClient, headers: dict, event_id: int, **fields) -> dict:
    payload = {"email": "guest@example.com", "name": "Gus Guest", "plus_ones_allowed": 1}
    payload.update(fields)
    r = client.post(f"/api/v1/events/{event_id}/invites", json={"invites": [payload]}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["invites"][0]
