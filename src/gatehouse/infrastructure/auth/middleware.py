"""Authentication middleware.

Runs RequestAuthenticator for every request and stores the identity on
``request.state.authenticated_user``. A presented token that is refused
ends the request with 401; a missing token does not.
"""

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from gatehouse.core.logging import get_logger
from gatehouse.infrastructure.auth.authenticator import RequestAuthenticator
from gatehouse.infrastructure.auth.token_codec import AuthenticationError
from gatehouse.infrastructure.persistence.database import get_db_manager

logger = get_logger(__name__)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Middleware that authenticates bearer tokens."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.authenticated_user = None
        authenticator: RequestAuthenticator = request.app.state.request_authenticator

        if authenticator.is_public(request.method, request.url.path):
            return await call_next(request)

        session_factory = getattr(request.app.state, "session_factory", None)
        if session_factory is None:
            session_factory = get_db_manager().session_factory

        try:
            async with session_factory() as session:
                request.state.authenticated_user = await authenticator.authenticate(
                    request.headers, session
                )
        except AuthenticationError as e:
            logger.info(
                "Authentication failed",
                reason=e.reason,
                path=request.url.path,
            )
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Unauthorized", "error_type": e.reason, "message": str(e)},
                headers={"WWW-Authenticate": "Bearer"},
            )

        return await call_next(request)
