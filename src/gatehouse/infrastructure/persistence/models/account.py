"""SQLAlchemy model for the accounts table.

Status is kept as four independent flags. Only AccountLifecycle may change
them; ``version_id`` makes concurrent writers to the same row fail instead
of silently overwriting each other.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatehouse.domain.entities import AccountState, AccountStatus
from gatehouse.infrastructure.persistence.database import Base
from gatehouse.infrastructure.persistence.models.role import RoleModel, account_roles


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AccountModel(Base):
    """SQLAlchemy model for the accounts table.

    Attributes:
        id: Auto-incrementing primary key.
        email: Canonical login identifier, stored lower-case.
        username: Handle chosen at activation (unique once set).
        employee_code: Generated code, also the reserved default username.
        national_id: Optional government identifier, unique when present.
        password_hash: Argon2 hash of the current password.
        registration_pending: Waiting for an approver.
        enabled: Activation completed.
        active: Not disabled by an administrator.
        account_locked: Administrative lock.
        activation_token: Last issued activation token, cleared on activation.
        activation_token_expiry: Server-side expiry of that token.
        version_id: Optimistic concurrency counter.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    employee_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    national_id: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    job_title: Mapped[str | None] = mapped_column(String(100), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    registration_pending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    account_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    activation_token: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    activation_token_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now, onupdate=_utc_now
    )
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    roles: Mapped[list[RoleModel]] = relationship(
        RoleModel,
        secondary=account_roles,
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def role_names(self) -> list[str]:
        return sorted(role.name for role in self.roles)

    @property
    def status(self) -> AccountStatus:
        return AccountStatus.of(self)

    @property
    def state(self) -> AccountState:
        return self.status.state

    @property
    def login_identifier(self) -> str:
        return self.email

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email={self.email}, state={self.state.value})>"
