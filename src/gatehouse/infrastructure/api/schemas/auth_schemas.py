"""Pydantic schemas for authentication endpoints."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from gatehouse.domain.entities import AccountState


class RegisterRequest(BaseModel):
    """Request body for self-registration."""

    email: EmailStr = Field(..., description="Email address, the login identifier")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    job_title: str | None = Field(None, max_length=100)
    department: str | None = Field(None, max_length=100)
    national_id: str | None = Field(None, min_length=1, max_length=50)
    password: str | None = Field(
        None,
        min_length=1,
        description="Initial password; generated when omitted and replaced at activation",
    )


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1)


class ActivateRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Activation token from the email")
    username: str | None = Field(
        None,
        min_length=3,
        max_length=100,
        description="Chosen username; defaults to the employee code",
    )
    new_password: str = Field(..., min_length=1)
    confirm_password: str = Field(..., min_length=1)


class ResendActivationRequest(BaseModel):
    email: EmailStr


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)
    confirm_password: str = Field(..., min_length=1)


class AccountResponse(BaseModel):
    """Account information in responses."""

    id: int
    email: str
    username: str | None
    employee_code: str
    first_name: str
    last_name: str
    job_title: str | None
    department: str | None
    roles: list[str] = Field(..., validation_alias="role_names")
    state: AccountState
    registration_pending: bool
    enabled: bool
    active: bool
    account_locked: bool
    created_at: datetime | None = None
    last_login: datetime | None = None

    model_config = {"from_attributes": True, "populate_by_name": True}


class TokenResponse(BaseModel):
    """Response for a successful login or activation."""

    token: str = Field(..., description="Access token")
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    account: AccountResponse


class ActivationTokenStatus(BaseModel):
    valid: bool
    employee_code: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class MessageResponse(BaseModel):
    message: str


class TokenInfoResponse(BaseModel):
    """What a token claims and whether it would be accepted (development only)."""

    subject: str | None = None
    email: str | None = None
    account_id: int | None = None
    kind: str | None = Field(None, description="Raw kind claim as issued")
    is_valid: bool
    invalid_reason: str | None = None
    is_access_token: bool
    remaining_lifetime_seconds: int
    account_found: bool | None = None
    valid_for_account: bool | None = None
