"""SQLAlchemy model for roles and the account/role link table."""

from sqlalchemy import Column, ForeignKey, Integer, String, Table
from sqlalchemy.orm import Mapped, mapped_column

from gatehouse.infrastructure.persistence.database import Base

account_roles = Table(
    "account_roles",
    Base.metadata,
    Column("account_id", ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class RoleModel(Base):
    """A role an account can hold (EMPLOYEE, PROJECT_MANAGER, ADMIN, GENERAL_MANAGER)."""

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
        comment="Role name, upper case",
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name})>"
