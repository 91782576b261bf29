"""FastAPI dependencies.

Application-wide singletons (token codec, revocation registry, notification
sender, transition locks) live on ``app.state``; request-scoped services
are assembled here around the request's database session.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.core.config import Settings
from gatehouse.core.logging import get_logger
from gatehouse.domain.entities import RoleName
from gatehouse.domain.services import AccountLifecycle, AuthenticationGateway, PasswordPolicy
from gatehouse.infrastructure.auth import AuthenticatedUser, TokenCodec
from gatehouse.infrastructure.auth.authenticator import extract_bearer_token
from gatehouse.infrastructure.persistence.database import get_db_session
from gatehouse.infrastructure.persistence.repositories import AccountRepository, RoleRepository

logger = get_logger(__name__)

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_password_policy(request: Request) -> PasswordPolicy:
    return PasswordPolicy(temporary_length=request.app.state.settings.temporary_password_length)


def get_account_lifecycle(request: Request, session: DbSession) -> AccountLifecycle:
    state = request.app.state
    return AccountLifecycle(
        session=session,
        account_repo=AccountRepository(session),
        role_repo=RoleRepository(session),
        token_codec=state.token_codec,
        notifier=state.notification_sender,
        locks=state.transition_locks,
        password_policy=get_password_policy(request),
        settings=state.settings,
    )


def get_authentication_gateway(request: Request, session: DbSession) -> AuthenticationGateway:
    state = request.app.state
    return AuthenticationGateway(
        session=session,
        account_repo=AccountRepository(session),
        token_codec=state.token_codec,
        revocation_registry=state.revocation_registry,
        password_policy=get_password_policy(request),
    )


def get_current_user(request: Request) -> AuthenticatedUser:
    """Identity resolved by AuthenticationMiddleware.

    Raises:
        HTTPException: 401 if the request carried no bearer token.
    """
    user = getattr(request.state, "authenticated_user", None)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_bearer_token(
    request: Request,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
) -> str:
    """Raw bearer token of an authenticated request."""
    token = extract_bearer_token(request.headers)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def require_admin(
    current_user: Annotated[AuthenticatedUser, Depends(get_current_user)],
) -> AuthenticatedUser:
    """Ensure the current user holds the ADMIN role.

    Raises:
        HTTPException: 403 otherwise.
    """
    if not current_user.has_role(RoleName.ADMIN.value):
        logger.info("Admin access denied", account_id=current_user.account_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return current_user


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
AdminUser = Annotated[AuthenticatedUser, Depends(require_admin)]
BearerToken = Annotated[str, Depends(get_bearer_token)]
Lifecycle = Annotated[AccountLifecycle, Depends(get_account_lifecycle)]
Gateway = Annotated[AuthenticationGateway, Depends(get_authentication_gateway)]
Codec = Annotated[TokenCodec, Depends(get_token_codec)]
