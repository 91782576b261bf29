from datetime import timedelta

import jwt
import pytest

from gatehouse.domain.exceptions import TokenInvalidError
from gatehouse.infrastructure.auth.token_codec import TokenCodec
from gatehouse.infrastructure.auth.token_types import TokenKind
from tests.conftest import FROZEN_AT, TEST_SECRET, FrozenClock


def _signed(payload: dict) -> str:
    """Sign a hand-built payload with the test key."""
    return jwt.encode(payload, TEST_SECRET.encode("utf-8"), algorithm="HS256")


def _base_payload(**overrides) -> dict:
    issued_at = int(FROZEN_AT.timestamp())
    payload = {"sub": "alice@example.com", "iat": issued_at, "exp": issued_at + 3600}
    payload.update(overrides)
    return payload


def test_access_token_carries_subject_roles_and_kind(token_codec):
    token = token_codec.issue_access_token("alice@example.com", 7, ["EMPLOYEE"])

    result = token_codec.verify(token)

    assert result.is_valid
    assert result.claims.subject == "alice@example.com"
    assert result.claims.account_id == 7
    assert result.claims.roles == ["EMPLOYEE"]
    assert result.claims.kind is TokenKind.ACCESS
    assert result.claims.expires_at - result.claims.issued_at == 3600


def test_activation_token_subject_is_account_id(token_codec):
    token = token_codec.issue_activation_token(42, "bob@example.com")

    claims = token_codec.require(token, TokenKind.ACTIVATION)

    assert claims.subject == "42"
    assert claims.account_id == 42
    assert claims.email == "bob@example.com"


def test_token_valid_until_skew_boundary(token_codec, frozen_clock: FrozenClock):
    token = token_codec.issue_access_token("alice@example.com", 1, [])

    # exp + skew - 1 microsecond: still inside the allowance
    frozen_clock.advance(seconds=3600 + 60, microseconds=-1)
    assert token_codec.verify(token).is_valid


def test_token_expired_at_skew_boundary(token_codec, frozen_clock: FrozenClock):
    token = token_codec.issue_access_token("alice@example.com", 1, [])

    frozen_clock.advance(seconds=3600 + 60)
    result = token_codec.verify(token)

    assert not result.is_valid
    assert result.reason == "expired"


def test_zero_skew_expires_exactly_at_exp():
    clock = FrozenClock()
    codec = TokenCodec(
        secret=TEST_SECRET,
        access_ttl=timedelta(minutes=1),
        clock_skew=timedelta(0),
        clock=clock,
    )
    token = codec.issue_access_token("alice@example.com", 1, [])

    clock.advance(seconds=59)
    assert codec.verify(token).is_valid
    clock.advance(seconds=1)
    assert not codec.verify(token).is_valid


@pytest.mark.parametrize("raw_kind", ["access", "ACCESS", "Access"])
def test_access_kind_is_case_insensitive(token_codec, raw_kind):
    token = _signed(_base_payload(type=raw_kind, account_id=1))

    assert token_codec.is_kind(token, TokenKind.ACCESS)
    assert token_codec.require(token, TokenKind.ACCESS).account_id == 1


@pytest.mark.parametrize("raw_kind", ["activation", "ACTIVATION", "ACCOUNT_ACTIVATION"])
def test_activation_kind_accepts_legacy_spelling(token_codec, raw_kind):
    token = _signed(_base_payload(type=raw_kind, account_id=3))

    assert token_codec.is_kind(token, TokenKind.ACTIVATION)
    assert not token_codec.is_kind(token, TokenKind.ACCESS)


def test_token_without_kind_matches_no_kind(token_codec):
    token = _signed(_base_payload(account_id=1))

    assert token_codec.verify(token).is_valid
    assert not token_codec.is_kind(token, TokenKind.ACCESS)
    assert not token_codec.is_kind(token, TokenKind.ACTIVATION)
    with pytest.raises(TokenInvalidError):
        token_codec.require(token, TokenKind.ACCESS)


def test_require_rejects_other_kind(token_codec):
    token = token_codec.issue_activation_token(5, "eve@example.com")

    with pytest.raises(TokenInvalidError):
        token_codec.require(token, TokenKind.ACCESS)


def test_caller_cannot_override_reserved_claims(token_codec):
    token = token_codec.issue_token_with_claims(
        {"type": "activation", "exp": 1, "iat": 1, "account_id": 9},
        subject="x@example.com",
        kind=TokenKind.ACCESS,
    )

    claims = token_codec.require(token, TokenKind.ACCESS)
    assert claims.account_id == 9
    assert claims.expires_at > int(FROZEN_AT.timestamp())


def test_tampered_signature_is_rejected(token_codec):
    token = token_codec.issue_access_token("alice@example.com", 1, [])
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, ("A" if signature[0] != "A" else "B") + signature[1:]])

    result = token_codec.verify(tampered)

    assert not result.is_valid
    assert result.reason == "bad_signature"


@pytest.mark.parametrize("token", [None, "", "not-a-token", "a.b.c"])
def test_garbage_tokens_fail_verification(token_codec, token):
    assert not token_codec.verify(token).is_valid


def test_missing_expiry_is_malformed(token_codec):
    token = _signed({"sub": "alice@example.com", "iat": int(FROZEN_AT.timestamp())})

    assert token_codec.verify(token).reason == "malformed"


def test_short_secret_falls_back_to_random_key():
    first = TokenCodec(secret="too-short", clock=FrozenClock())
    second = TokenCodec(secret="too-short", clock=FrozenClock())
    token = first.issue_access_token("alice@example.com", 1, [])

    assert first.verify(token).is_valid
    assert not second.verify(token).is_valid


def test_base64_secret_is_decoded():
    import base64

    raw = bytes(range(32))
    codec = TokenCodec(secret=base64.b64encode(raw).decode("ascii"), clock=FrozenClock())
    token = codec.issue_access_token("alice@example.com", 1, [])

    jwt.decode(token, raw, algorithms=["HS256"], options={"verify_exp": False})


def test_claim_never_raises(token_codec, frozen_clock: FrozenClock):
    token = token_codec.issue_access_token("alice@example.com", 1, [])
    frozen_clock.advance(days=30)

    assert token_codec.claim(token, "sub") == "alice@example.com"
    assert token_codec.claim(token, "missing") is None
    assert token_codec.claim("garbage", "sub") is None
    assert token_codec.claim(None, "sub") is None


def test_matches_subject_ignores_case(token_codec):
    token = token_codec.issue_access_token("Alice@Example.com", 1, [])

    assert token_codec.matches_subject(token, "alice@example.com")
    assert not token_codec.matches_subject(token, "bob@example.com")
    assert not token_codec.matches_subject(token, None)
    assert not token_codec.matches_subject("garbage", "alice@example.com")


def test_remaining_lifetime(token_codec, frozen_clock: FrozenClock):
    token = token_codec.issue_access_token("alice@example.com", 1, [])

    frozen_clock.advance(minutes=10)
    assert token_codec.remaining_lifetime(token) == timedelta(minutes=50)

    frozen_clock.advance(hours=2)
    assert token_codec.remaining_lifetime(token) == timedelta(0)
    assert token_codec.remaining_lifetime("garbage") == timedelta(0)
