"""Role repository for database operations."""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.infrastructure.persistence.models import RoleModel


class RoleRepository:
    """Repository for role database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_name(self, name: str) -> RoleModel | None:
        result = await self.session.execute(
            select(RoleModel).where(RoleModel.name == name.upper())
        )
        return result.scalar_one_or_none()

    async def get_by_names(self, names: Iterable[str]) -> list[RoleModel]:
        """Get the roles with the given names; unknown names are skipped."""
        wanted = {name.upper() for name in names}
        if not wanted:
            return []
        result = await self.session.execute(
            select(RoleModel).where(RoleModel.name.in_(wanted)).order_by(RoleModel.name)
        )
        return list(result.scalars().all())
