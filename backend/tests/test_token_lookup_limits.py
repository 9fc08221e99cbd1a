# backend/tests/test_token_lookup_limits.py
from __future__ import annotations

import pytest

from evently.core.rate_limit import TOKEN_LOOKUP_RATE_LIMIT, reset_all_limiters

UNKNOWN = "z" * 43


def _invite_lookup(client):
    return client.get("/api/v1/invites/lookup", params={"token": UNKNOWN})


def _verify_email(client):
    return client.post("/api/v1/auth/verify-email", json={"token": UNKNOWN})


def _preview(client):
    return client.get(f"/api/v1/preview/{UNKNOWN}")


@pytest.mark.parametrize(
    "call, miss_status",
    [(_invite_lookup, 404), (_verify_email, 400), (_preview, 404)],
    ids=["invite-lookup", "verify-email", "preview"],
)
def test_guessing_tokens_is_throttled(client, call, miss_status):
    reset_all_limiters()

    codes = [call(client).status_code for _ in range(TOKEN_LOOKUP_RATE_LIMIT)]
    assert codes == [miss_status] * TOKEN_LOOKUP_RATE_LIMIT

    r = call(client)
    assert r.status_code == 429
    assert r.json()["detail"]["code"] == "RATE_LIMITED"


def test_lookup_endpoints_share_one_bucket(client):
    reset_all_limiters()

    for _ in range(TOKEN_LOOKUP_RATE_LIMIT):
        _invite_lookup(client)

    assert _verify_email(client).status_code == 429
    assert _preview(client).status_code == 429
