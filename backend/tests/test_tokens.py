# backend/tests/test_tokens.py
"""
Property tests for the credential token helpers.
"""

import re
import string

from hypothesis import HealthCheck, given, settings, strategies as st

from evently.core.tokens import (
    DIGEST_HEX_LENGTH,
    TokenPair,
    generate_token,
    generate_token_pair,
    hash_token,
    verify_token,
)

settings.register_profile(
    "tokens",
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile("tokens")

HEX_RE = re.compile(r"^[0-9a-f]{64}$")
URL_SAFE_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

any_text = st.text(max_size=200)


def test_generated_tokens_are_url_safe():
    for _ in range(500):
        tok = generate_token()
        assert "+" not in tok and "/" not in tok and "=" not in tok
        assert URL_SAFE_RE.match(tok), tok
        # 32 random bytes -> 43 base64url chars
        assert len(tok) >= 43


def test_generated_tokens_do_not_collide():
    tokens = {generate_token() for _ in range(5000)}
    assert len(tokens) == 5000


@given(any_text)
def test_hash_is_deterministic_lowercase_hex(s):
    h1 = hash_token(s)
    assert h1 == hash_token(s)
    assert len(h1) == DIGEST_HEX_LENGTH
    assert HEX_RE.match(h1)


def test_hash_accepts_lone_surrogates():
    s = "guest-\ud800-\udfff"
    assert HEX_RE.match(hash_token(s))
    assert verify_token(s, hash_token(s))


@given(st.lists(any_text, min_size=2, max_size=50, unique=True))
def test_distinct_inputs_give_distinct_digests(values):
    digests = {hash_token(v) for v in values}
    assert len(digests) == len(values)


@given(any_text)
def test_verify_accepts_own_digest(t):
    assert verify_token(t, hash_token(t)) is True


@given(any_text, any_text)
def test_verify_rejects_other_digest(t1, t2):
    if t1 == t2:
        return
    assert verify_token(t1, hash_token(t2)) is False


@given(any_text, st.integers(min_value=0, max_value=DIGEST_HEX_LENGTH - 1), st.sampled_from(string.hexdigits + "xz!"))
def test_single_character_mutation_never_verifies(t, index, replacement):
    digest = hash_token(t)
    if digest[index] == replacement:
        return
    mutated = digest[:index] + replacement + digest[index + 1:]
    assert verify_token(t, mutated) is False


def test_uppercased_digest_does_not_verify():
    t = "a" * 43
    digest = hash_token(t)
    upper = digest.upper()
    if upper != digest:
        assert verify_token(t, upper) is False


def test_empty_string_verifies_against_its_own_digest():
    # Documented boundary: callers reject empty tokens before verifying.
    assert verify_token("", hash_token("")) is True


@given(any_text, st.text(max_size=DIGEST_HEX_LENGTH - 1))
def test_short_digest_never_matches(t, short):
    assert verify_token(t, short) is False


def test_wrong_length_or_malformed_digest_is_false_not_error():
    t = generate_token()
    assert verify_token(t, "short") is False
    assert verify_token(t, hash_token(t) + "00") is False
    assert verify_token(t, "g" * DIGEST_HEX_LENGTH) is False
    assert verify_token(t, "é" * DIGEST_HEX_LENGTH) is False
    assert verify_token(t, None) is False  # type: ignore[arg-type]
    assert verify_token(None, hash_token(t)) is False  # type: ignore[arg-type]


def test_generate_token_pair_is_consistent_and_unrelated():
    p1 = generate_token_pair()
    p2 = generate_token_pair()

    assert isinstance(p1, TokenPair)
    token, token_hash = p1
    assert verify_token(token, token_hash)
    assert token_hash == hash_token(token)

    assert p1.token != p2.token
    assert p1.token_hash != p2.token_hash
    assert p1.token not in (p2.token, p2.token_hash)
    assert p1.token_hash not in (p2.token, p2.token_hash)


def test_tampered_url_token_is_rejected():
    pair = generate_token_pair()
    last = pair.token[-1]
    tampered = pair.token[:-1] + ("A" if last != "A" else "B")
    assert verify_token(tampered, pair.token_hash) is False
