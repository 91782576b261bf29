"""Authentication infrastructure: tokens, revocation, hashing and request auth."""

from gatehouse.infrastructure.auth.password_hasher import (
    DUMMY_PASSWORD_HASH,
    hash_password,
    needs_rehash,
    verify_password,
)
from gatehouse.infrastructure.auth.revocation_registry import RevocationRegistry
from gatehouse.infrastructure.auth.token_codec import AuthenticationError, TokenCodec
from gatehouse.infrastructure.auth.token_types import (
    AuthenticatedUser,
    TokenClaims,
    TokenKind,
    TokenVerification,
)

__all__ = [
    "DUMMY_PASSWORD_HASH",
    "AuthenticatedUser",
    "AuthenticationError",
    "RevocationRegistry",
    "TokenClaims",
    "TokenCodec",
    "TokenKind",
    "TokenVerification",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
