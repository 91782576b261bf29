"""API route modules."""

from gatehouse.infrastructure.api.routes.auth_router import router as auth_router
from gatehouse.infrastructure.api.routes.debug_router import router as debug_router
from gatehouse.infrastructure.api.routes.users_router import router as users_router

__all__ = ["auth_router", "debug_router", "users_router"]
