"""SQLAlchemy models for Gatehouse tables."""

from gatehouse.infrastructure.persistence.models.account import AccountModel
from gatehouse.infrastructure.persistence.models.role import RoleModel, account_roles

__all__ = ["AccountModel", "RoleModel", "account_roles"]
