"""Signed bearer tokens (HS256 JWTs).

TokenCodec issues access tokens and single-purpose activation tokens and
verifies them. Verification returns a ``TokenVerification`` instead of
raising, so request paths can branch on the outcome.

Expiry is checked here rather than by PyJWT so that the clock and the
skew allowance are under our control: a token counts as expired once
``exp <= now - skew``.
"""

import base64
import binascii
import secrets
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from pydantic import ValidationError

from gatehouse.core.config import get_settings
from gatehouse.core.logging import get_logger
from gatehouse.domain.exceptions import TokenInvalidError
from gatehouse.infrastructure.auth.token_types import (
    KIND_CLAIM,
    TokenClaims,
    TokenKind,
    TokenVerification,
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]

# Claims the codec sets itself; callers cannot override them.
RESERVED_CLAIMS = frozenset({"iat", "exp", KIND_CLAIM})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthenticationError(Exception):
    """Raised when a bearer credential is rejected."""

    def __init__(self, message: str, reason: str = "token_invalid") -> None:
        super().__init__(message)
        self.reason = reason


class TokenCodec:
    """Issue and verify HS256 tokens with a key of at least 256 bits."""

    ALGORITHM = "HS256"
    MIN_KEY_BYTES = 32

    def __init__(
        self,
        secret: str | None = None,
        access_ttl: timedelta | None = None,
        activation_ttl: timedelta | None = None,
        clock_skew: timedelta | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the codec.

        Args:
            secret: Signing secret, Base64 or raw text. Defaults to settings.
            access_ttl: Lifetime of access tokens.
            activation_ttl: Lifetime of activation tokens.
            clock_skew: Leeway applied when checking expiry.
            clock: Returns the current UTC time. Injectable for tests.
        """
        settings = get_settings()
        self._key = self._derive_key(settings.secret_key if secret is None else secret)
        self.access_ttl = access_ttl or settings.access_token_ttl
        self.activation_ttl = activation_ttl or settings.activation_token_ttl
        self.clock_skew = settings.clock_skew if clock_skew is None else clock_skew
        self._clock = clock or utc_now

    @classmethod
    def _derive_key(cls, secret: str) -> bytes:
        """Turn the configured secret into HMAC key bytes.

        The secret is read as Base64 first, then as UTF-8 text. A key shorter
        than 256 bits is never used; a random one is generated instead, which
        means tokens will not survive a restart.
        """
        key: bytes
        try:
            key = base64.b64decode(secret, validate=True) if secret else b""
        except (binascii.Error, ValueError):
            key = secret.encode("utf-8")

        if len(key) < cls.MIN_KEY_BYTES:
            logger.warning(
                "Configured secret is shorter than 256 bits, using a random signing key",
                key_bits=len(key) * 8,
            )
            return secrets.token_bytes(cls.MIN_KEY_BYTES)
        return key

    def now(self) -> datetime:
        return self._clock()

    def issue_access_token(
        self,
        subject: str,
        account_id: int,
        roles: list[str],
    ) -> str:
        """Issue an access token.

        Args:
            subject: The account's canonical login identifier (its email).
            account_id: Stable account id.
            roles: Role names granted to the account.
        """
        return self.issue_token_with_claims(
            {"roles": list(roles), "account_id": account_id},
            subject=subject,
            ttl=self.access_ttl,
            kind=TokenKind.ACCESS,
        )

    def issue_activation_token(self, account_id: int, email: str) -> str:
        """Issue an activation token bound to one account."""
        return self.issue_token_with_claims(
            {"account_id": account_id, "email": email},
            subject=str(account_id),
            ttl=self.activation_ttl,
            kind=TokenKind.ACTIVATION,
        )

    def issue_token_with_claims(
        self,
        claims: Mapping[str, Any],
        subject: str | None = None,
        ttl: timedelta | None = None,
        kind: TokenKind = TokenKind.ACCESS,
    ) -> str:
        """Sign an arbitrary claim set.

        ``iat``, ``exp`` and the kind claim are always set by the codec so
        every token carries exactly one kind.
        """
        ttl = ttl or self.access_ttl
        issued_at = int(self.now().timestamp())
        payload: dict[str, Any] = {
            k: v for k, v in claims.items() if k not in RESERVED_CLAIMS
        }
        if subject is not None:
            payload["sub"] = subject
        payload[KIND_CLAIM] = kind.value
        payload["iat"] = issued_at
        payload["exp"] = issued_at + int(ttl.total_seconds())
        return jwt.encode(payload, self._key, algorithm=self.ALGORITHM)

    def _decode(self, token: str) -> dict[str, Any]:
        return jwt.decode(
            token,
            self._key,
            algorithms=[self.ALGORITHM],
            options={
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "require": ["exp", "iat"],
            },
        )

    def is_expired(self, expires_at: float) -> bool:
        """True once ``expires_at`` is at or before ``now - skew``."""
        threshold = self.now().timestamp() - self.clock_skew.total_seconds()
        return expires_at <= threshold

    def verify(self, token: str | None) -> TokenVerification:
        """Check structure, signature and expiry of a token."""
        if not token:
            return TokenVerification.invalid("missing")
        try:
            payload = self._decode(token)
            claims = TokenClaims.model_validate(payload)
        except jwt.InvalidSignatureError:
            return TokenVerification.invalid("bad_signature")
        except jwt.PyJWTError:
            return TokenVerification.invalid("malformed")
        except ValidationError:
            return TokenVerification.invalid("malformed_claims")

        if self.is_expired(claims.expires_at):
            return TokenVerification.invalid("expired")
        return TokenVerification.valid(claims)

    def require(self, token: str | None, kind: TokenKind) -> TokenClaims:
        """Verify a token and insist on its kind.

        Raises:
            TokenInvalidError: If the token fails verification or is of
                another kind (or of no kind at all).
        """
        result = self.verify(token)
        if not result.is_valid or result.claims is None:
            raise TokenInvalidError(f"Token is not valid ({result.reason})")
        if result.claims.kind is not kind:
            raise TokenInvalidError(f"Token is not an {kind.value} token")
        return result.claims

    def claim(self, token: str | None, key: str) -> Any | None:
        """Read one claim without failing on expiry.

        The signature is still checked. Returns None on any failure.
        """
        if not token:
            return None
        try:
            return self._decode(token).get(key)
        except (jwt.PyJWTError, ValueError, TypeError):
            return None

    def is_kind(self, token: str | None, kind: TokenKind) -> bool:
        """Compare the token's kind claim to ``kind``, case-insensitively."""
        return TokenKind.parse(self.claim(token, KIND_CLAIM)) is kind

    def matches_subject(self, token: str | None, login_identifier: str | None) -> bool:
        """True if the token's subject equals the account's login identifier."""
        subject = self.claim(token, "sub")
        if not isinstance(subject, str) or not subject or not login_identifier:
            return False
        return subject.lower() == login_identifier.lower()

    def remaining_lifetime(self, token: str | None) -> timedelta:
        """Time left before expiry, ignoring skew. Zero on any failure."""
        expires_at = self.claim(token, "exp")
        if not isinstance(expires_at, (int, float)):
            return timedelta(0)
        remaining = expires_at - self.now().timestamp()
        return timedelta(seconds=max(remaining, 0))

    @property
    def access_token_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self.access_ttl.total_seconds())
