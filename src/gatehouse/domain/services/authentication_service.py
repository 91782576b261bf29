"""Login and logout.

The canonical login identifier is the account's email address, compared
case-insensitively. Usernames and employee codes are display handles and
are never used for lookup, so there is exactly one lookup path.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from gatehouse.core.logging import get_logger, token_fingerprint
from gatehouse.domain.exceptions import (
    AccountDisabledError,
    AccountLockedError,
    AccountNotActivatedError,
    InvalidCredentialsError,
    InvalidStateError,
)
from gatehouse.domain.services.password_policy import PasswordPolicy
from gatehouse.infrastructure.auth.password_hasher import DUMMY_PASSWORD_HASH, needs_rehash
from gatehouse.infrastructure.auth.revocation_registry import RevocationRegistry
from gatehouse.infrastructure.auth.token_codec import TokenCodec
from gatehouse.infrastructure.persistence.models import AccountModel
from gatehouse.infrastructure.persistence.repositories import AccountRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    account: AccountModel
    access_token: str
    expires_in: int


class AuthenticationGateway:
    """Checks credentials and account state, then issues an access token."""

    def __init__(
        self,
        session: AsyncSession,
        account_repo: AccountRepository,
        token_codec: TokenCodec,
        revocation_registry: RevocationRegistry,
        password_policy: PasswordPolicy | None = None,
    ) -> None:
        self.session = session
        self.account_repo = account_repo
        self.token_codec = token_codec
        self.revocation_registry = revocation_registry
        self.password_policy = password_policy or PasswordPolicy()

    async def login(self, identifier: str, password: str) -> LoginResult:
        """Authenticate by email and password.

        Unknown email and wrong password produce the same
        InvalidCredentialsError, and both run one password verification.
        State checks happen only after the password matched.

        Raises:
            InvalidCredentialsError: Unknown identifier or wrong password.
            AccountNotActivatedError: Activation not completed.
            AccountDisabledError: Disabled by an administrator.
            AccountLockedError: Locked by an administrator.
        """
        account = await self.account_repo.get_by_login_identifier(identifier)
        if account is None:
            self.password_policy.verify(password, DUMMY_PASSWORD_HASH)
            logger.info("Login failed", reason="unknown_identifier")
            raise InvalidCredentialsError()

        if not self.password_policy.verify(password, account.password_hash):
            logger.info("Login failed", reason="wrong_password", account_id=account.id)
            raise InvalidCredentialsError()

        if not account.enabled:
            logger.info("Login refused", reason="not_activated", account_id=account.id)
            raise AccountNotActivatedError("Account has not been activated")
        if not account.active:
            logger.info("Login refused", reason="disabled", account_id=account.id)
            raise AccountDisabledError("Account is disabled")
        if account.account_locked:
            logger.info("Login refused", reason="locked", account_id=account.id)
            raise AccountLockedError("Account is locked")

        if needs_rehash(account.password_hash):
            account.password_hash = self.password_policy.hash(password)
        account.last_login = self.token_codec.now()
        try:
            await self.account_repo.update(account)
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            raise InvalidStateError("Account was modified concurrently, retry the login") from e

        access_token = self.token_codec.issue_access_token(
            subject=account.login_identifier,
            account_id=account.id,
            roles=account.role_names,
        )
        logger.info("Login succeeded", account_id=account.id)
        return LoginResult(
            account=account,
            access_token=access_token,
            expires_in=self.token_codec.access_token_expires_in,
        )

    def logout(self, token: str) -> None:
        """Revoke an access token for the rest of its lifetime."""
        expires_at = self.token_codec.claim(token, "exp")
        self.revocation_registry.revoke(
            token, expires_at if isinstance(expires_at, (int, float)) else None
        )
        logger.info("Logged out", token_fingerprint=token_fingerprint(token))
