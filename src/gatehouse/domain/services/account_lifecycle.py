"""Account lifecycle state machine.

AccountLifecycle owns every change to an account's status flags and
activation token. Each transition runs as one unit per account:

1. take the in-process lock for the account,
2. re-read the row from the database,
3. validate the requested transition against the stored flags,
4. write and commit.

The ``version_id`` column catches writers in other processes; a stale write
surfaces as ``InvalidStateError``. Notifications are scheduled only after
the commit and never affect the transition's outcome.
"""

import asyncio
import secrets
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from gatehouse.core.config import Settings, get_settings
from gatehouse.core.logging import get_logger
from gatehouse.domain.entities import (
    DEFAULT_ROLE,
    AccountStats,
    ActivationPreview,
    NewAccount,
    ProvisionedAccount,
    RoleName,
)
from gatehouse.domain.exceptions import (
    AccountNotFoundError,
    BusinessRuleError,
    DuplicateIdentityError,
    InvalidStateError,
    PasswordMismatchError,
    TokenInvalidError,
    TokenReplayError,
)
from gatehouse.domain.services.employee_code_generator import EmployeeCodeGenerator
from gatehouse.domain.services.password_policy import PasswordPolicy
from gatehouse.domain.services.registration_flows import (
    RegistrationFlow,
    provisioning_flow,
    public_registration_flow,
)
from gatehouse.infrastructure.auth.token_codec import TokenCodec
from gatehouse.infrastructure.auth.token_types import TokenKind
from gatehouse.infrastructure.persistence.models import AccountModel
from gatehouse.infrastructure.persistence.repositories import (
    AccountRepository,
    RoleRepository,
    normalize_email,
)
from gatehouse.infrastructure.services.notification_service import NotificationSender

logger = get_logger(__name__)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UNIQUE_FIELDS = ("national_id", "employee_code", "username", "email")


def conflicting_field(error: IntegrityError, default: str = "identity") -> str:
    """Name the unique column a constraint violation reports.

    SQLite says ``UNIQUE constraint failed: accounts.<column>`` and
    PostgreSQL names the constraint ``accounts_<column>_key``; anything
    else falls back to ``default``.
    """
    detail = str(error.orig).lower()
    for field in UNIQUE_FIELDS:
        if field in detail:
            return field
    return default


class TransitionLocks:
    """One asyncio.Lock per account id, dropped once nobody holds it."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def for_account(self, account_id: int) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, account_id: int) -> AsyncIterator[None]:
        lock = self.for_account(account_id)
        async with lock:
            yield


@dataclass(frozen=True)
class ActivationResult:
    """Outcome of a successful activation: the account is logged in."""

    account: AccountModel
    access_token: str
    expires_in: int


class AccountLifecycle:
    """Named transitions over an account's status flags."""

    def __init__(
        self,
        session: AsyncSession,
        account_repo: AccountRepository,
        role_repo: RoleRepository,
        token_codec: TokenCodec,
        notifier: NotificationSender,
        locks: TransitionLocks,
        password_policy: PasswordPolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the lifecycle service.

        Args:
            session: SQLAlchemy async session; every transition commits it.
            account_repo: Repository for accounts.
            role_repo: Repository for roles.
            token_codec: Issues and verifies activation/access tokens.
            notifier: Fire-and-forget email sender.
            locks: Shared per-account transition locks.
            password_policy: Hashing and temporary password generation.
            settings: Application settings.
        """
        self.session = session
        self.account_repo = account_repo
        self.role_repo = role_repo
        self.token_codec = token_codec
        self.notifier = notifier
        self.locks = locks
        self.settings = settings or get_settings()
        self.password_policy = password_policy or PasswordPolicy(
            temporary_length=self.settings.temporary_password_length
        )

    # Creation

    async def register(self, request: NewAccount) -> AccountModel:
        """Create an account through the public registration flow.

        Raises:
            DuplicateIdentityError: If the email or national id is taken.
            InvalidStateError: If public registration is turned off.
        """
        flow = public_registration_flow(self.settings)
        if not flow.allows_self_registration:
            raise InvalidStateError("Self-registration is disabled")
        if request.password is not None:
            self.password_policy.ensure_strong(request.password)
            password = request.password
        else:
            password = self.password_policy.generate_temporary_password()

        account = await self._create(request, flow, password)
        logger.info(
            "Account registered",
            account_id=account.id,
            flow=flow.name,
            state=account.state.value,
        )
        return account

    async def provision(self, request: NewAccount) -> ProvisionedAccount:
        """Create an account on behalf of an administrator.

        The welcome email carries the temporary password and the activation
        link; the password is also returned to the caller.
        """
        flow = provisioning_flow(self.settings)
        temporary_password = self.password_policy.generate_temporary_password()
        account = await self._create(request, flow, temporary_password)
        logger.info("Account provisioned", account_id=account.id, state=account.state.value)

        self.notifier.send(
            "welcome",
            account.email,
            {
                **self._template_data(account),
                "temporary_password": temporary_password,
                "activation_link": self._activation_link(account.activation_token),
            },
        )
        return ProvisionedAccount(
            account_id=account.id,
            employee_code=account.employee_code,
            email=account.email,
            temporary_password=temporary_password,
        )

    async def _create(
        self, request: NewAccount, flow: RegistrationFlow, password: str
    ) -> AccountModel:
        email = normalize_email(request.email)
        if await self.account_repo.email_exists(email):
            raise DuplicateIdentityError("email")
        if request.national_id and await self.account_repo.national_id_exists(request.national_id):
            raise DuplicateIdentityError("national_id")

        employee_code = await EmployeeCodeGenerator.generate_unique(
            request.job_title,
            request.department,
            self.account_repo.employee_code_exists,
        )
        roles = await self.role_repo.get_by_names(role.value for role in request.roles)
        if not roles:
            roles = await self.role_repo.get_by_names([DEFAULT_ROLE.value])

        status = flow.initial_status()
        account = AccountModel(
            email=email,
            employee_code=employee_code,
            national_id=request.national_id,
            first_name=request.first_name,
            last_name=request.last_name,
            job_title=request.job_title,
            department=request.department,
            password_hash=self.password_policy.hash(password),
            registration_pending=status.registration_pending,
            enabled=status.enabled,
            active=status.active,
            account_locked=False,
            roles=roles,
        )
        try:
            await self.account_repo.create(account)
            if flow.issues_activation_on_create:
                self._issue_activation(account)
                await self.account_repo.update(account)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateIdentityError(conflicting_field(e)) from e
        return account

    # Approval

    async def approve(self, account_id: int) -> AccountModel:
        """Approve a pending registration and send the activation email.

        Raises:
            AccountNotFoundError: If the account does not exist.
            InvalidStateError: If the account is already approved or not pending.
        """
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if account.enabled:
                raise InvalidStateError("Account is already approved")
            if not account.registration_pending:
                raise InvalidStateError("Account is not pending registration")

            account.registration_pending = False
            if not self._has_usable_activation_token(account):
                self._issue_activation(account)
            await self._save(account)

        logger.info("Registration approved", account_id=account_id)
        self.notifier.send(
            "activation",
            account.email,
            {
                **self._template_data(account),
                "activation_link": self._activation_link(account.activation_token),
            },
        )
        return account

    async def reject(self, account_id: int) -> None:
        """Reject a pending registration by deleting the account.

        There is no "rejected" state: the row is removed and the email can
        register again.
        """
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if account.enabled:
                raise InvalidStateError("Cannot reject an activated account")
            if not account.registration_pending:
                raise InvalidStateError("Account is not pending registration")
            try:
                await self.account_repo.delete(account)
                await self.session.commit()
            except StaleDataError as e:
                await self.session.rollback()
                raise InvalidStateError("Account was modified concurrently") from e

        logger.info("Registration rejected, account deleted", account_id=account_id)

    # Activation

    async def activate(
        self,
        activation_token: str,
        username: str | None,
        new_password: str,
        confirm_password: str,
    ) -> ActivationResult:
        """Activate an account and log it in.

        Raises:
            PasswordMismatchError: If the passwords differ.
            PasswordPolicyError: If the password is too weak.
            TokenInvalidError: If the token does not verify as an activation
                token, or its stored expiry has passed.
            AccountNotFoundError: If the token names no existing account.
            InvalidStateError: If the account is already activated or still
                awaiting approval.
            TokenReplayError: If the token is not the one currently stored.
            DuplicateIdentityError: If the username is taken.
        """
        if new_password != confirm_password:
            raise PasswordMismatchError("Passwords do not match")
        self.password_policy.ensure_strong(new_password)

        claims = self.token_codec.require(activation_token, TokenKind.ACTIVATION)
        account_id = self._account_id_from(claims.account_id, claims.subject)

        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if account.enabled:
                raise InvalidStateError("Account is already activated")
            if account.activation_token is None or not secrets.compare_digest(
                account.activation_token.encode("utf-8"), activation_token.encode("utf-8")
            ):
                logger.warning("Activation with superseded token", account_id=account_id)
                raise TokenReplayError("This activation link is no longer valid")
            if (
                account.activation_token_expiry is None
                or as_utc(account.activation_token_expiry) <= self.token_codec.now()
            ):
                raise TokenInvalidError("Activation link has expired")
            if account.registration_pending:
                raise InvalidStateError("Registration is awaiting approval")

            chosen = (username or "").strip() or account.employee_code
            if chosen != account.employee_code and await self.account_repo.username_taken(
                chosen, exclude_account_id=account.id
            ):
                raise DuplicateIdentityError("username")

            account.username = chosen
            account.password_hash = self.password_policy.hash(new_password)
            account.enabled = True
            account.active = True
            account.activation_token = None
            account.activation_token_expiry = None
            account.last_login = self.token_codec.now()
            await self._save(account, conflict_field="username")

        logger.info("Account activated", account_id=account_id)
        access_token = self.token_codec.issue_access_token(
            subject=account.login_identifier,
            account_id=account.id,
            roles=account.role_names,
        )
        return ActivationResult(
            account=account,
            access_token=access_token,
            expires_in=self.token_codec.access_token_expires_in,
        )

    async def validate_activation_token(self, activation_token: str) -> ActivationPreview | None:
        """Read-only check of an activation token.

        Returns the account summary if the token would currently be accepted
        by ``activate``, None otherwise.
        """
        try:
            claims = self.token_codec.require(activation_token, TokenKind.ACTIVATION)
            account_id = self._account_id_from(claims.account_id, claims.subject)
        except TokenInvalidError:
            return None

        account = await self.account_repo.get_by_id_fresh(account_id)
        if account is None or account.enabled:
            return None
        if account.activation_token is None or not secrets.compare_digest(
            account.activation_token.encode("utf-8"), activation_token.encode("utf-8")
        ):
            return None
        if (
            account.activation_token_expiry is None
            or as_utc(account.activation_token_expiry) <= self.token_codec.now()
        ):
            return None
        return ActivationPreview(
            account_id=account.id,
            employee_code=account.employee_code,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
        )

    async def resend_activation(self, email: str) -> None:
        """Replace the activation token and send it again.

        Raises:
            AccountNotFoundError: If no account has this email.
            InvalidStateError: If the account is activated or awaiting approval.
        """
        existing = await self.account_repo.get_by_email(email)
        if existing is None:
            raise AccountNotFoundError(normalize_email(email))

        async with self.locks.hold(existing.id):
            account = await self._load(existing.id)
            if account.enabled:
                raise InvalidStateError("Account is already activated")
            if account.registration_pending:
                raise InvalidStateError("Registration is awaiting approval")
            self._issue_activation(account)
            await self._save(account)

        logger.info("Activation token reissued", account_id=account.id)
        self.notifier.send(
            "activation_reminder",
            account.email,
            {
                **self._template_data(account),
                "activation_link": self._activation_link(account.activation_token),
            },
        )

    async def reset_temporary_password(self, account_id: int) -> ProvisionedAccount:
        """Give a not yet activated account a new temporary password.

        Also reissues the activation token and re-sends the welcome email.
        """
        temporary_password = self.password_policy.generate_temporary_password()
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if account.enabled:
                raise InvalidStateError("Account is already activated")
            account.password_hash = self.password_policy.hash(temporary_password)
            self._issue_activation(account)
            await self._save(account)

        logger.info("Temporary password reset", account_id=account_id)
        self.notifier.send(
            "temporary_password_reset",
            account.email,
            {
                **self._template_data(account),
                "temporary_password": temporary_password,
                "activation_link": self._activation_link(account.activation_token),
            },
        )
        return ProvisionedAccount(
            account_id=account.id,
            employee_code=account.employee_code,
            email=account.email,
            temporary_password=temporary_password,
        )

    # Administration

    async def disable(self, account_id: int) -> AccountModel:
        """Clear ``active``. Only an activated account can be disabled."""
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if not account.enabled:
                raise InvalidStateError("Account has not been activated")
            if not account.active:
                raise InvalidStateError("Account is already disabled")
            account.active = False
            await self._save(account)

        logger.info("Account disabled", account_id=account_id)
        self.notifier.send("account_disabled", account.email, self._template_data(account))
        return account

    async def enable(self, account_id: int) -> AccountModel:
        """Set ``active`` again. Never a substitute for approval or activation."""
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if not account.enabled:
                raise InvalidStateError("Account has not been activated")
            if account.active:
                raise InvalidStateError("Account is already active")
            account.active = True
            await self._save(account)

        logger.info("Account enabled", account_id=account_id)
        return account

    async def lock(self, account_id: int) -> AccountModel:
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if account.account_locked:
                raise InvalidStateError("Account is already locked")
            account.account_locked = True
            await self._save(account)

        logger.info("Account locked", account_id=account_id)
        return account

    async def unlock(self, account_id: int) -> AccountModel:
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if not account.account_locked:
                raise InvalidStateError("Account is not locked")
            account.account_locked = False
            await self._save(account)

        logger.info("Account unlocked", account_id=account_id)
        return account

    async def change_password(
        self,
        account_id: int,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        if new_password != confirm_password:
            raise PasswordMismatchError("Passwords do not match")
        async with self.locks.hold(account_id):
            account = await self._load(account_id)
            if not self.password_policy.verify(current_password, account.password_hash):
                raise PasswordMismatchError("Current password is incorrect")
            if new_password == current_password:
                raise BusinessRuleError("New password must differ from the current password")
            self.password_policy.ensure_strong(new_password)
            account.password_hash = self.password_policy.hash(new_password)
            await self._save(account)

        logger.info("Password changed", account_id=account_id)

    async def stats(self) -> AccountStats:
        return await self.account_repo.count_by_state()

    # Helpers

    async def _load(self, account_id: int) -> AccountModel:
        account = await self.account_repo.get_by_id_fresh(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    async def _save(self, account: AccountModel, conflict_field: str = "email") -> None:
        try:
            await self.account_repo.update(account)
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            logger.warning("Concurrent account update rejected", account_id=account.id)
            raise InvalidStateError("Account was modified concurrently") from e
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateIdentityError(conflicting_field(e, default=conflict_field)) from e

    def _issue_activation(self, account: AccountModel) -> None:
        """Overwrite the stored activation token, invalidating any earlier one."""
        account.activation_token = self.token_codec.issue_activation_token(
            account.id, account.email
        )
        account.activation_token_expiry = self.token_codec.now() + self.token_codec.activation_ttl

    def _has_usable_activation_token(self, account: AccountModel) -> bool:
        if not account.activation_token or account.activation_token_expiry is None:
            return False
        if as_utc(account.activation_token_expiry) <= self.token_codec.now():
            return False
        return self.token_codec.verify(account.activation_token).is_valid

    @staticmethod
    def _account_id_from(account_id: int | None, subject: str | None) -> int:
        if account_id is not None:
            return account_id
        try:
            return int(subject or "")
        except ValueError as e:
            raise TokenInvalidError("Activation token does not name an account") from e

    def _activation_link(self, token: str | None) -> str:
        return f"{self.settings.app_url.rstrip('/')}/activate?token={token}"

    def _template_data(self, account: AccountModel) -> dict[str, object]:
        return {
            "first_name": account.first_name,
            "last_name": account.last_name,
            "email": account.email,
            "employee_code": account.employee_code,
            "activation_days": self.settings.activation_token_expire_days,
        }


async def ensure_administrator(session: AsyncSession, email: str, password: str) -> AccountModel:
    """Create an active administrator unless an account with ``email`` exists."""
    account_repo = AccountRepository(session)
    existing = await account_repo.get_by_email(email)
    if existing is not None:
        logger.info("Administrator already exists", account_id=existing.id)
        return existing

    role_repo = RoleRepository(session)
    employee_code = await EmployeeCodeGenerator.generate_unique(
        "Administrator", "Administration", account_repo.employee_code_exists
    )
    account = AccountModel(
        email=email,
        username=employee_code,
        employee_code=employee_code,
        first_name="System",
        last_name="Administrator",
        job_title="Administrator",
        department="Administration",
        password_hash=PasswordPolicy().hash(password),
        registration_pending=False,
        enabled=True,
        active=True,
        account_locked=False,
        roles=await role_repo.get_by_names([RoleName.ADMIN.value]),
    )
    await account_repo.create(account)
    await session.commit()
    logger.info("Administrator created", account_id=account.id)
    return account
