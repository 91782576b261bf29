"""Account administration routes (administrators only)."""

from fastapi import APIRouter, status

from gatehouse.domain.entities import NewAccount
from gatehouse.domain.exceptions import AccountNotFoundError
from gatehouse.infrastructure.api.dependencies import AdminUser, DbSession, Lifecycle
from gatehouse.infrastructure.api.schemas import (
    AccountResponse,
    AccountStatsResponse,
    ProvisionAccountRequest,
    ProvisionedAccountResponse,
)
from gatehouse.infrastructure.persistence.repositories import AccountRepository

router = APIRouter()


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ProvisionedAccountResponse,
    responses={409: {"description": "Email or national id already registered"}},
)
async def provision_account(
    request: ProvisionAccountRequest, admin: AdminUser, lifecycle: Lifecycle
) -> ProvisionedAccountResponse:
    """Create an account with a temporary password and email its activation link."""
    created = await lifecycle.provision(
        NewAccount(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            job_title=request.job_title,
            department=request.department,
            national_id=request.national_id,
            roles=list(request.roles),
        )
    )
    return ProvisionedAccountResponse(
        account_id=created.account_id,
        employee_code=created.employee_code,
        email=created.email,
        temporary_password=created.temporary_password,
    )


@router.get("/stats", response_model=AccountStatsResponse)
async def account_stats(admin: AdminUser, lifecycle: Lifecycle) -> AccountStatsResponse:
    stats = await lifecycle.stats()
    return AccountStatsResponse(
        pending_registration=stats.pending_registration,
        pending_activation=stats.pending_activation,
        active=stats.active,
        disabled=stats.disabled,
        locked=stats.locked,
        total=stats.total,
    )


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(account_id: int, admin: AdminUser, session: DbSession) -> AccountResponse:
    account = await AccountRepository(session).get_by_id(account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return AccountResponse.model_validate(account)


@router.post("/{account_id}/disable", response_model=AccountResponse)
async def disable_account(account_id: int, admin: AdminUser, lifecycle: Lifecycle) -> AccountResponse:
    return AccountResponse.model_validate(await lifecycle.disable(account_id))


@router.post("/{account_id}/enable", response_model=AccountResponse)
async def enable_account(account_id: int, admin: AdminUser, lifecycle: Lifecycle) -> AccountResponse:
    return AccountResponse.model_validate(await lifecycle.enable(account_id))


@router.post("/{account_id}/lock", response_model=AccountResponse)
async def lock_account(account_id: int, admin: AdminUser, lifecycle: Lifecycle) -> AccountResponse:
    return AccountResponse.model_validate(await lifecycle.lock(account_id))


@router.post("/{account_id}/unlock", response_model=AccountResponse)
async def unlock_account(account_id: int, admin: AdminUser, lifecycle: Lifecycle) -> AccountResponse:
    return AccountResponse.model_validate(await lifecycle.unlock(account_id))


@router.post("/{account_id}/reset-temporary-password", response_model=ProvisionedAccountResponse)
async def reset_temporary_password(
    account_id: int, admin: AdminUser, lifecycle: Lifecycle
) -> ProvisionedAccountResponse:
    """Issue a new temporary password for an account that never activated."""
    created = await lifecycle.reset_temporary_password(account_id)
    return ProvisionedAccountResponse(
        account_id=created.account_id,
        employee_code=created.employee_code,
        email=created.email,
        temporary_password=created.temporary_password,
    )
