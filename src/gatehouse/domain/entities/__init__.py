"""Domain entities."""

from gatehouse.domain.entities.account import (
    DEFAULT_ROLE,
    PRIVILEGED_ROLES,
    AccountState,
    AccountStats,
    AccountStatus,
    ActivationPreview,
    NewAccount,
    ProvisionedAccount,
    RoleName,
)

__all__ = [
    "DEFAULT_ROLE",
    "PRIVILEGED_ROLES",
    "AccountState",
    "AccountStats",
    "AccountStatus",
    "ActivationPreview",
    "NewAccount",
    "ProvisionedAccount",
    "RoleName",
]
