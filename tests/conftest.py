"""Pytest configuration for all tests."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gatehouse.core.config import Settings
from gatehouse.domain.entities import NewAccount
from gatehouse.domain.services import (
    AccountLifecycle,
    AuthenticationGateway,
    PasswordPolicy,
    TransitionLocks,
    ensure_administrator,
)
from gatehouse.infrastructure.auth import RevocationRegistry, TokenCodec
from gatehouse.infrastructure.auth.authenticator import RequestAuthenticator
from gatehouse.infrastructure.persistence import models  # noqa: F401
from gatehouse.infrastructure.persistence.database import Base, get_db_session, seed_roles
from gatehouse.infrastructure.persistence.repositories import AccountRepository, RoleRepository
from gatehouse.infrastructure.services.email import EmailProvider
from gatehouse.infrastructure.services.notification_service import NotificationSender

TEST_SECRET = "test-secret-key-at-least-256-bits-long-for-security"
FROZEN_AT = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1n!Passw0rd"
ACCOUNT_PASSWORD = "N3w!Passw0rd"


class FrozenClock:
    """Clock for TokenCodec that only moves when told to."""

    def __init__(self, now: datetime = FROZEN_AT) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


class RecordingEmailProvider(EmailProvider):
    """Keeps every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []
        self.fail_with: Exception | None = None

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        from_email: str,
        from_name: str,
        reply_to: str | None = None,
    ) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(
            {"to": to, "subject": subject, "html_body": html_body, "text_body": text_body}
        )
        return True

    def to(self, recipient: str) -> list[dict[str, str]]:
        return [m for m in self.sent if m["to"] == recipient]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="testing",
        secret_key=TEST_SECRET,
        database_url="sqlite+aiosqlite:///:memory:",
        app_url="http://gatehouse.test",
        registration_flow="self_registration",
        admin_email=None,
        admin_password=None,
        smtp_host=None,
        log_format="console",
    )


@pytest.fixture
def frozen_clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def token_codec(settings: Settings, frozen_clock: FrozenClock) -> TokenCodec:
    return TokenCodec(
        secret=settings.secret_key,
        access_ttl=settings.access_token_ttl,
        activation_ttl=settings.activation_token_ttl,
        clock_skew=settings.clock_skew,
        clock=frozen_clock,
    )


@pytest.fixture
def revocation_registry(settings: Settings) -> RevocationRegistry:
    return RevocationRegistry(clock_skew_seconds=settings.clock_skew_seconds)


@pytest.fixture
def email_provider() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture
def notification_sender(
    email_provider: RecordingEmailProvider, settings: Settings
) -> NotificationSender:
    return NotificationSender(email_provider, settings=settings)


@pytest.fixture
def transition_locks() -> TransitionLocks:
    return TransitionLocks()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session.

    Uses an in-memory SQLite database with the role catalogue seeded.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        await seed_roles(session)

    async with session_maker() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def lifecycle(
    db_session: AsyncSession,
    token_codec: TokenCodec,
    notification_sender: NotificationSender,
    transition_locks: TransitionLocks,
    settings: Settings,
) -> AccountLifecycle:
    return AccountLifecycle(
        session=db_session,
        account_repo=AccountRepository(db_session),
        role_repo=RoleRepository(db_session),
        token_codec=token_codec,
        notifier=notification_sender,
        locks=transition_locks,
        password_policy=PasswordPolicy(),
        settings=settings,
    )


@pytest.fixture
def gateway(
    db_session: AsyncSession,
    token_codec: TokenCodec,
    revocation_registry: RevocationRegistry,
) -> AuthenticationGateway:
    return AuthenticationGateway(
        session=db_session,
        account_repo=AccountRepository(db_session),
        token_codec=token_codec,
        revocation_registry=revocation_registry,
    )


@pytest.fixture
def app(
    settings: Settings,
    db_session: AsyncSession,
    token_codec: TokenCodec,
    revocation_registry: RevocationRegistry,
    notification_sender: NotificationSender,
    transition_locks: TransitionLocks,
):
    """Application wired to the test session, clock and mail recorder."""
    from gatehouse.infrastructure.api.app import create_app

    application = create_app(settings)

    @asynccontextmanager
    async def session_factory():
        yield db_session

    application.state.session_factory = session_factory
    application.state.token_codec = token_codec
    application.state.revocation_registry = revocation_registry
    application.state.notification_sender = notification_sender
    application.state.transition_locks = transition_locks
    application.state.request_authenticator = RequestAuthenticator(
        token_codec, revocation_registry, settings.public_paths
    )
    application.dependency_overrides[get_db_session] = lambda: db_session
    yield application
    application.dependency_overrides = {}


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client bound to the in-process application."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_account(db_session: AsyncSession):
    return await ensure_administrator(db_session, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest_asyncio.fixture
async def admin_token(admin_account, token_codec: TokenCodec) -> str:
    return token_codec.issue_access_token(
        subject=admin_account.email,
        account_id=admin_account.id,
        roles=admin_account.role_names,
    )


@pytest.fixture
def admin_headers(admin_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {admin_token}"}


def new_account(email: str = "ada@example.com", **overrides) -> NewAccount:
    data = {
        "email": email,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "job_title": "Developer",
        "department": "Engineering",
    }
    data.update(overrides)
    return NewAccount(**data)


@pytest_asyncio.fixture
async def activated_account(lifecycle: AccountLifecycle, notification_sender: NotificationSender):
    """An account taken through register, approve and activate."""
    account = await lifecycle.register(new_account())
    account = await lifecycle.approve(account.id)
    result = await lifecycle.activate(
        account.activation_token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD
    )
    await notification_sender.drain()
    return result.account
