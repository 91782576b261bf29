"""Pydantic request and response schemas."""

from gatehouse.infrastructure.api.schemas.auth_schemas import (
    AccountResponse,
    ActivateRequest,
    ActivationTokenStatus,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResendActivationRequest,
    TokenInfoResponse,
    TokenResponse,
)
from gatehouse.infrastructure.api.schemas.users_schemas import (
    AccountStatsResponse,
    ProvisionAccountRequest,
    ProvisionedAccountResponse,
)

__all__ = [
    "AccountResponse",
    "AccountStatsResponse",
    "ActivateRequest",
    "ActivationTokenStatus",
    "ChangePasswordRequest",
    "LoginRequest",
    "MessageResponse",
    "ProvisionAccountRequest",
    "ProvisionedAccountResponse",
    "RegisterRequest",
    "ResendActivationRequest",
    "TokenInfoResponse",
    "TokenResponse",
]
