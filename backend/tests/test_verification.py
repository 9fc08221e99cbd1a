# backend/tests/test_verification.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import extract_token, signup
from evently.core.tokens import hash_token
from evently.models import EmailLog, User


def test_signup_sends_verification_link_and_stores_only_digest(client, mailer, SessionLocal):
    signup(client, email="Verify.Me@Example.com")

    msg = mailer.last_to("verify.me@example.com")
    assert msg["subject"] == "Verify your email address"
    token = extract_token(msg["text"], "verify-email")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == "verify.me@example.com").one()
        assert user.email_verified is False
        assert user.verification_token_hash == hash_token(token)
        assert token not in (user.verification_token_hash or "")
        assert user.verification_expires_at is not None

        log = db.query(EmailLog).filter(EmailLog.to_email == "verify.me@example.com").one()
        assert log.template == "VERIFICATION"
        assert log.status == "SENT"
    finally:
        db.close()


def test_verify_email_marks_user_verified_and_is_single_use(client, mailer):
    headers = signup(client, email="once@example.com")
    token = extract_token(mailer.last_to("once@example.com")["text"], "verify-email")

    r = client.post("/api/v1/auth/verify-email", json={"token": token})
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "email": "once@example.com"}

    status = client.get("/api/v1/auth/verification-status", headers=headers).json()
    assert status["email_verified"] is True
    assert status["email_verified_at"] is not None
    assert status["pending_link_expires_at"] is None

    # digest was cleared, so the same link no longer matches anything
    r2 = client.post("/api/v1/auth/verify-email", json={"token": token})
    assert r2.status_code == 400
    assert r2.json()["detail"]["code"] == "BAD_TOKEN"


def test_verify_email_rejects_empty_and_short_tokens(client):
    r = client.post("/api/v1/auth/verify-email", json={"token": ""})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "MISSING_TOKEN"

    r = client.post("/api/v1/auth/verify-email", json={"token": "abc"})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "BAD_TOKEN"


def test_empty_token_never_matches_even_if_empty_digest_is_stored(client, SessionLocal):
    signup(client, email="edge@example.com")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == "edge@example.com").one()
        user.verification_token_hash = hash_token("")
        db.commit()
    finally:
        db.close()

    r = client.post("/api/v1/auth/verify-email", json={"token": "   "})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "MISSING_TOKEN"


def test_tampered_verification_token_is_rejected(client, mailer):
    signup(client, email="tamper@example.com")
    token = extract_token(mailer.last_to("tamper@example.com")["text"], "verify-email")
    tampered = token[:-1] + ("A" if token[-1] != "A" else "B")

    r = client.post("/api/v1/auth/verify-email", json={"token": tampered})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "BAD_TOKEN"


def test_expired_verification_token(client, mailer, SessionLocal):
    signup(client, email="late@example.com")
    token = extract_token(mailer.last_to("late@example.com")["text"], "verify-email")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == "late@example.com").one()
        user.verification_expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.commit()
    finally:
        db.close()

    r = client.post("/api/v1/auth/verify-email", json={"token": token})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "TOKEN_EXPIRED"


def test_resend_rotates_the_link(client, mailer):
    headers = signup(client, email="again@example.com")
    first = extract_token(mailer.last_to("again@example.com")["text"], "verify-email")

    r = client.post("/api/v1/auth/resend-verification", headers=headers)
    assert r.status_code == 200, r.text
    second = extract_token(mailer.last_to("again@example.com")["text"], "verify-email")
    assert first != second

    old = client.post("/api/v1/auth/verify-email", json={"token": first})
    assert old.status_code == 400
    assert old.json()["detail"]["code"] == "BAD_TOKEN"

    ok = client.post("/api/v1/auth/verify-email", json={"token": second})
    assert ok.status_code == 200

    again = client.post("/api/v1/auth/resend-verification", headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"]["code"] == "ALREADY_VERIFIED"


def test_login_and_me(client):
    signup(client, email="me@example.com", password="long-enough-pw")

    r = client.post("/api/v1/auth/login", data={"username": "ME@example.com", "password": "long-enough-pw"})
    assert r.status_code == 200, r.text
    headers = {"Authorization": f"Bearer {r.json()['access_token']}"}

    me = client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["email"] == "me@example.com"
    assert me.json()["email_verified"] is False

    bad = client.post("/api/v1/auth/login", data={"username": "me@example.com", "password": "wrong-password"})
    assert bad.status_code == 401
    assert bad.json()["detail"]["code"] == "INVALID_CREDENTIALS"


def test_signup_rejects_weak_password_and_duplicates(client):
    r = client.post("/api/v1/auth/signup", json={"email": "weak@example.com", "password": "short"})
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "WEAK_PASSWORD"

    signup(client, email="dup@example.com")
    r = client.post("/api/v1/auth/signup", json={"email": "DUP@example.com", "password": "another-password"})
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "EMAIL_ALREADY_REGISTERED"
