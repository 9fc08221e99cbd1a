# backend/evently/core/rate_limit.py
import os
import time
from typing import Dict, Tuple, List

from fastapi import Request, HTTPException, status


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


class SimpleRateLimiter:
    """
    Very simple in-memory sliding-window rate limiter keyed by (key, client_ip).

    Good enough for local development and single-instance deployments.
    Token-verifying endpoints sit behind one of these so guessing links
    is throttled per client.

    Keep call signatures clean (no *args/**kwargs), otherwise FastAPI
    treats them as query params.
    """

    def __init__(self, key: str, limit: int, window_seconds: int):
        self.key = key
        self.limit = int(limit)
        self.window_seconds = int(window_seconds)
        # (key, ip) -> list[timestamps]
        self._store: Dict[Tuple[str, str], List[float]] = {}

    def _client_ip(self, request: Request) -> str:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            return xff.split(",")[0].strip() or "unknown"

        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()

        if request.client and request.client.host:
            return request.client.host

        return "unknown"

    def reset(self) -> None:
        self._store.clear()

    async def hit(self, request: Request) -> None:
        client_ip = self._client_ip(request)
        now = time.time()
        bucket_key = (self.key, client_ip)

        cutoff = now - self.window_seconds
        timestamps = [ts for ts in self._store.get(bucket_key, []) if ts >= cutoff]

        if len(timestamps) >= self.limit:
            self._store[bucket_key] = timestamps
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={"code": "RATE_LIMITED", "message": "Too many requests, please slow down."},
            )

        timestamps.append(now)
        self._store[bucket_key] = timestamps

    async def __call__(self, request: Request) -> None:
        await self.hit(request)


# === Per-endpoint limiters ===
AUTH_RATE_LIMIT = _env_int("AUTH_RATE_LIMIT", 10)
AUTH_RATE_WINDOW = _env_int("AUTH_RATE_WINDOW", 60)

RSVP_RATE_LIMIT = _env_int("RSVP_RATE_LIMIT", 5)
RSVP_RATE_WINDOW = _env_int("RSVP_RATE_WINDOW", 60)

INVITES_RATE_LIMIT = _env_int("INVITES_RATE_LIMIT", 20)
INVITES_RATE_WINDOW = _env_int("INVITES_RATE_WINDOW", 60)

TOKEN_LOOKUP_RATE_LIMIT = _env_int("TOKEN_LOOKUP_RATE_LIMIT", 30)
TOKEN_LOOKUP_RATE_WINDOW = _env_int("TOKEN_LOOKUP_RATE_WINDOW", 60)

WEBHOOKS_RATE_LIMIT = _env_int("WEBHOOKS_RATE_LIMIT", 1000)
WEBHOOKS_RATE_WINDOW = _env_int("WEBHOOKS_RATE_WINDOW", 60)


_auth_limiter = SimpleRateLimiter("auth", AUTH_RATE_LIMIT, AUTH_RATE_WINDOW)
_rsvp_limiter = SimpleRateLimiter("rsvp", RSVP_RATE_LIMIT, RSVP_RATE_WINDOW)
_invites_limiter = SimpleRateLimiter("invites", INVITES_RATE_LIMIT, INVITES_RATE_WINDOW)
_token_lookup_limiter = SimpleRateLimiter("token_lookup", TOKEN_LOOKUP_RATE_LIMIT, TOKEN_LOOKUP_RATE_WINDOW)
_webhooks_limiter = SimpleRateLimiter("webhooks", WEBHOOKS_RATE_LIMIT, WEBHOOKS_RATE_WINDOW)

ALL_LIMITERS = (
    _auth_limiter,
    _rsvp_limiter,
    _invites_limiter,
    _token_lookup_limiter,
    _webhooks_limiter,
)


def reset_all_limiters() -> None:
    for limiter in ALL_LIMITERS:
        limiter.reset()


async def auth_rate_limit(request: Request) -> None:
    await _auth_limiter.hit(request)


async def rsvp_rate_limit(request: Request) -> None:
    await _rsvp_limiter.hit(request)


async def invites_rate_limit(request: Request) -> None:
    await _invites_limiter.hit(request)


async def token_lookup_rate_limit(request: Request) -> None:
    await _token_lookup_limiter.hit(request)


async def webhooks_rate_limit(request: Request) -> None:
    await _webhooks_limiter.hit(request)
