"""Pydantic schemas for account administration endpoints."""

from pydantic import BaseModel, EmailStr, Field

from gatehouse.domain.entities import DEFAULT_ROLE, RoleName


class ProvisionAccountRequest(BaseModel):
    """Request body for creating an account as an administrator."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    job_title: str | None = Field(None, max_length=100)
    department: str | None = Field(None, max_length=100)
    national_id: str | None = Field(None, min_length=1, max_length=50)
    roles: list[RoleName] = Field(default_factory=lambda: [DEFAULT_ROLE], min_length=1)


class ProvisionedAccountResponse(BaseModel):
    """Created account; the temporary password is shown once."""

    account_id: int
    employee_code: str
    email: str
    temporary_password: str


class AccountStatsResponse(BaseModel):
    pending_registration: int
    pending_activation: int
    active: int
    disabled: int
    locked: int
    total: int
