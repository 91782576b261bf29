"""Account entities and the derived lifecycle state.

Accounts are stored with four independent status flags. ``AccountStatus``
turns a flag combination into a single ``AccountState`` for display and
logging; it is never written back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class AccountState(str, Enum):
    """Derived lifecycle state of an account."""

    PENDING_REGISTRATION = "PENDING_REGISTRATION"
    PENDING_ACTIVATION = "PENDING_ACTIVATION"
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    LOCKED = "LOCKED"


class RoleName(str, Enum):
    """Role identifiers an account can hold."""

    EMPLOYEE = "EMPLOYEE"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    ADMIN = "ADMIN"
    GENERAL_MANAGER = "GENERAL_MANAGER"


DEFAULT_ROLE = RoleName.EMPLOYEE
PRIVILEGED_ROLES = frozenset({RoleName.ADMIN})


class HasStatusFlags(Protocol):
    registration_pending: bool
    enabled: bool
    active: bool
    account_locked: bool


@dataclass(frozen=True)
class AccountStatus:
    """Snapshot of an account's status flags.

    Attributes:
        registration_pending: True from creation until an approver acts.
        enabled: True once the holder completed activation.
        active: False only while an administrator has disabled the account.
        account_locked: Administrative lock, orthogonal to the other flags.
    """

    registration_pending: bool
    enabled: bool
    active: bool
    account_locked: bool

    @classmethod
    def of(cls, account: HasStatusFlags) -> "AccountStatus":
        return cls(
            registration_pending=account.registration_pending,
            enabled=account.enabled,
            active=account.active,
            account_locked=account.account_locked,
        )

    @property
    def state(self) -> AccountState:
        # Lock wins over everything, then the lifecycle order.
        if self.account_locked:
            return AccountState.LOCKED
        if self.registration_pending:
            return AccountState.PENDING_REGISTRATION
        if not self.enabled:
            return AccountState.PENDING_ACTIVATION
        if not self.active:
            return AccountState.DISABLED
        return AccountState.ACTIVE

    @property
    def is_consistent(self) -> bool:
        """A pending registration can never be enabled."""
        return not (self.registration_pending and self.enabled)


@dataclass
class NewAccount:
    """Data needed to create an account through either registration flow.

    ``password`` is only set for self-registration; provisioned accounts get a
    generated temporary password.
    """

    email: str
    first_name: str
    last_name: str
    job_title: str | None = None
    department: str | None = None
    national_id: str | None = None
    password: str | None = None
    roles: list[RoleName] = field(default_factory=lambda: [DEFAULT_ROLE])

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError("Email is required")
        if not self.roles:
            self.roles = [DEFAULT_ROLE]


@dataclass(frozen=True)
class ActivationPreview:
    """What an activation page may show before the holder activates."""

    account_id: int
    employee_code: str
    email: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class ProvisionedAccount:
    """Result of creating an account with a temporary password."""

    account_id: int
    employee_code: str
    email: str
    temporary_password: str


@dataclass(frozen=True)
class AccountStats:
    """Number of accounts in each derived state."""

    pending_registration: int
    pending_activation: int
    active: int
    disabled: int
    locked: int

    @property
    def total(self) -> int:
        return (
            self.pending_registration
            + self.pending_activation
            + self.active
            + self.disabled
            + self.locked
        )
