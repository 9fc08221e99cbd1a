# backend/evently/core/tokens.py
"""
Bearer credential tokens (RSVP links, email verification, preview links).

Only the SHA-256 digest of a token is ever persisted. The plaintext is handed
to the requester (usually embedded in an emailed URL) and then dropped.

    pair = generate_token_pair()
    invite.token_hash = pair.token_hash
    link = f"{app_url}/rsvp/{pair.token}"

    ...later...
    if not verify_token(presented, invite.token_hash):
        raise HTTPException(404, ...)

verify_token("", hash_token("")) is True. Callers must reject empty or short
tokens before verifying; this module applies no length policy.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import NamedTuple

TOKEN_BYTES = 32
DIGEST_HEX_LENGTH = 64  # sha256 hexdigest


class TokenPair(NamedTuple):
    token: str
    token_hash: str


def generate_token() -> str:
    # base64url, no padding. secrets -> os.urandom; errors propagate.
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    # surrogatepass keeps the function total over every str
    return hashlib.sha256(token.encode("utf-8", "surrogatepass")).hexdigest()


def verify_token(token: str, token_hash: str) -> bool:
    """
    Timing-safe check of a presented token against a stored digest.

    The stored digest must match byte for byte (lowercase hex). Returns
    False, never raises, for non-str input or a digest of the wrong length.
    """
    if not isinstance(token, str) or not isinstance(token_hash, str):
        return False
    if len(token_hash) != DIGEST_HEX_LENGTH:
        return False

    actual = hash_token(token).encode("ascii")
    expected = token_hash.encode("utf-8", "surrogatepass")
    return hmac.compare_digest(actual, expected)


def generate_token_pair() -> TokenPair:
    token = generate_token()
    return TokenPair(token=token, token_hash=hash_token(token))
