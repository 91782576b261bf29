"""Authentication API routes.

Registration, approval, activation, login and logout. Domain errors raised
by the services are rendered by the application's exception handlers.
"""

from fastapi import APIRouter, Response, status

from gatehouse.core.logging import get_logger
from gatehouse.domain.entities import NewAccount
from gatehouse.domain.exceptions import AccountNotFoundError
from gatehouse.infrastructure.api.dependencies import (
    AdminUser,
    BearerToken,
    CurrentUser,
    DbSession,
    Gateway,
    Lifecycle,
)
from gatehouse.infrastructure.api.schemas import (
    AccountResponse,
    ActivateRequest,
    ActivationTokenStatus,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResendActivationRequest,
    TokenResponse,
)
from gatehouse.infrastructure.persistence.repositories import AccountRepository

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AccountResponse,
    responses={
        400: {"description": "Weak password"},
        409: {"description": "Email or national id already registered"},
    },
)
async def register(request: RegisterRequest, lifecycle: Lifecycle) -> AccountResponse:
    """Register an account. It stays pending until an administrator approves it."""
    account = await lifecycle.register(
        NewAccount(
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            job_title=request.job_title,
            department=request.department,
            national_id=request.national_id,
            password=request.password,
        )
    )
    return AccountResponse.model_validate(account)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"description": "Invalid credentials"},
        403: {"description": "Account not activated, disabled or locked"},
    },
)
async def login(request: LoginRequest, gateway: Gateway) -> TokenResponse:
    """Log in with email and password."""
    result = await gateway.login(request.email, request.password)
    return TokenResponse(
        token=result.access_token,
        expires_in=result.expires_in,
        account=AccountResponse.model_validate(result.account),
    )


@router.post("/activate", response_model=TokenResponse)
async def activate(request: ActivateRequest, lifecycle: Lifecycle) -> TokenResponse:
    """Activate an account with the emailed token and log it in."""
    result = await lifecycle.activate(
        activation_token=request.token,
        username=request.username,
        new_password=request.new_password,
        confirm_password=request.confirm_password,
    )
    return TokenResponse(
        token=result.access_token,
        expires_in=result.expires_in,
        account=AccountResponse.model_validate(result.account),
    )


@router.get("/validate-activation-token/{token}", response_model=ActivationTokenStatus)
async def validate_activation_token(token: str, lifecycle: Lifecycle) -> ActivationTokenStatus:
    """Tell an activation page whether its token is still usable."""
    preview = await lifecycle.validate_activation_token(token)
    if preview is None:
        return ActivationTokenStatus(valid=False)
    return ActivationTokenStatus(
        valid=True,
        employee_code=preview.employee_code,
        email=preview.email,
        first_name=preview.first_name,
        last_name=preview.last_name,
    )


@router.post(
    "/resend-activation",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=MessageResponse,
)
async def resend_activation(
    request: ResendActivationRequest, lifecycle: Lifecycle
) -> MessageResponse:
    await lifecycle.resend_activation(request.email)
    return MessageResponse(message="A new activation link has been sent")


@router.post("/logout", response_model=MessageResponse)
async def logout(token: BearerToken, gateway: Gateway) -> MessageResponse:
    """Revoke the presented access token."""
    gateway.logout(token)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=AccountResponse)
async def me(current_user: CurrentUser, session: DbSession) -> AccountResponse:
    account = await AccountRepository(session).get_by_id(current_user.account_id)
    if account is None:
        raise AccountNotFoundError(current_user.account_id)
    return AccountResponse.model_validate(account)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: CurrentUser,
    lifecycle: Lifecycle,
) -> MessageResponse:
    await lifecycle.change_password(
        current_user.account_id,
        current_password=request.current_password,
        new_password=request.new_password,
        confirm_password=request.confirm_password,
    )
    return MessageResponse(message="Password changed")


@router.post("/approve-registration/{account_id}", response_model=AccountResponse)
async def approve_registration(
    account_id: int, admin: AdminUser, lifecycle: Lifecycle
) -> AccountResponse:
    """Approve a pending registration and send the activation email."""
    account = await lifecycle.approve(account_id)
    logger.info("Registration approved via API", account_id=account_id, approver_id=admin.account_id)
    return AccountResponse.model_validate(account)


@router.post("/reject-registration/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reject_registration(account_id: int, admin: AdminUser, lifecycle: Lifecycle) -> Response:
    """Reject a pending registration. The account is deleted."""
    await lifecycle.reject(account_id)
    logger.info("Registration rejected via API", account_id=account_id, approver_id=admin.account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
