"""Per-request bearer token authentication.

Order of checks for every request:

1. public routes and CORS preflight skip authentication entirely, before
   the token is even looked at;
2. no bearer header means the request continues unauthenticated and the
   route decides whether it needs an identity;
3. revoked tokens are rejected;
4. the token must verify and be an access token;
5. the account must still exist, still be usable and still have the
   login identifier the token was issued for.
"""

from collections.abc import Iterable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.core.logging import get_logger, token_fingerprint
from gatehouse.infrastructure.auth.revocation_registry import RevocationRegistry
from gatehouse.infrastructure.auth.token_codec import AuthenticationError, TokenCodec
from gatehouse.infrastructure.auth.token_types import AuthenticatedUser, TokenKind
from gatehouse.infrastructure.persistence.repositories import AccountRepository

logger = get_logger(__name__)


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Return the token of an ``Authorization: Bearer`` header, if any."""
    auth_header = headers.get("Authorization") or headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class RequestAuthenticator:
    """Resolves the identity behind a request's bearer token."""

    def __init__(
        self,
        token_codec: TokenCodec,
        revocation_registry: RevocationRegistry,
        public_paths: Iterable[str],
    ) -> None:
        self.token_codec = token_codec
        self.revocation_registry = revocation_registry
        self.public_paths = tuple(p.rstrip("/") or "/" for p in public_paths)

    def is_public(self, method: str, path: str) -> bool:
        if method.upper() == "OPTIONS":
            return True
        path = path.rstrip("/") or "/"
        return any(path == p or path.startswith(p + "/") for p in self.public_paths)

    async def authenticate(
        self, headers: Mapping[str, str], session: AsyncSession
    ) -> AuthenticatedUser | None:
        """Authenticate the bearer token in ``headers``.

        Returns:
            The identity, or None when no bearer token was sent.

        Raises:
            AuthenticationError: If a token was sent and must be refused.
        """
        token = extract_bearer_token(headers)
        if token is None:
            return None

        if self.revocation_registry.is_revoked(token):
            logger.info("Rejected revoked token", token_fingerprint=token_fingerprint(token))
            raise AuthenticationError("Token revoked", reason="token_revoked")

        verification = self.token_codec.verify(token)
        if not verification.is_valid or verification.claims is None:
            logger.info("Rejected invalid token", reason=verification.reason)
            raise AuthenticationError("Invalid or expired token")

        claims = verification.claims
        if claims.kind is not TokenKind.ACCESS:
            logger.info("Rejected non-access token", kind=claims.raw_kind)
            raise AuthenticationError("Not an access token")
        if claims.account_id is None:
            raise AuthenticationError("Token does not name an account")

        account = await AccountRepository(session).get_by_id(claims.account_id)
        if account is None:
            raise AuthenticationError("Account no longer exists")
        if not self.token_codec.matches_subject(token, account.login_identifier):
            logger.warning("Token subject does not match account", account_id=account.id)
            raise AuthenticationError("Token subject no longer matches the account")
        if not account.enabled or not account.active or account.account_locked:
            raise AuthenticationError("Account is not active", reason="account_inactive")

        return AuthenticatedUser(
            account_id=account.id,
            email=account.email,
            username=account.username,
            roles=account.role_names,
            token_expires_at=claims.expires_at,
        )
