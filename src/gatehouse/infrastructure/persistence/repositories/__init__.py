"""Persistence repositories for database operations."""

from gatehouse.infrastructure.persistence.repositories.account_repository import (
    AccountRepository,
    normalize_email,
)
from gatehouse.infrastructure.persistence.repositories.role_repository import (
    RoleRepository,
)

__all__ = ["AccountRepository", "RoleRepository", "normalize_email"]
