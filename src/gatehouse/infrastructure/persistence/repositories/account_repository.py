"""Account repository for database operations.

Every lookup by email lower-cases its argument; emails are stored
lower-case, so the comparison is case-insensitive.
"""

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gatehouse.domain.entities import AccountState, AccountStats, AccountStatus
from gatehouse.infrastructure.persistence.models import AccountModel


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountRepository:
    """Repository for account database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def create(self, account: AccountModel) -> AccountModel:
        """Add a new account and flush to assign its id."""
        account.email = normalize_email(account.email)
        self.session.add(account)
        await self.session.flush()
        return account

    async def update(self, account: AccountModel) -> AccountModel:
        """Flush pending changes to an account.

        Raises:
            sqlalchemy.orm.exc.StaleDataError: If another writer changed the
                row since it was read.
        """
        await self.session.flush()
        return account

    async def delete(self, account: AccountModel) -> None:
        await self.session.delete(account)
        await self.session.flush()

    async def get_by_id(self, account_id: int) -> AccountModel | None:
        result = await self.session.execute(
            select(AccountModel).where(AccountModel.id == account_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id_fresh(self, account_id: int) -> AccountModel | None:
        """Get an account, overwriting any copy cached in the session.

        Lifecycle transitions read through this so they validate against the
        stored flags, not a stale identity-map instance.
        """
        result = await self.session.execute(
            select(AccountModel)
            .where(AccountModel.id == account_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> AccountModel | None:
        result = await self.session.execute(
            select(AccountModel)
            .where(AccountModel.email == normalize_email(email))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> AccountModel | None:
        result = await self.session.execute(
            select(AccountModel).where(AccountModel.username == username)
        )
        return result.scalar_one_or_none()

    async def get_by_login_identifier(self, identifier: str) -> AccountModel | None:
        """Resolve the canonical login identifier (the email address)."""
        return await self.get_by_email(identifier)

    async def email_exists(self, email: str) -> bool:
        return await self._exists(AccountModel.email == normalize_email(email))

    async def national_id_exists(self, national_id: str) -> bool:
        return await self._exists(AccountModel.national_id == national_id)

    async def employee_code_exists(self, employee_code: str) -> bool:
        return await self._exists(AccountModel.employee_code == employee_code)

    async def username_taken(self, username: str, exclude_account_id: int | None = None) -> bool:
        """True if another account uses ``username`` as username or employee code."""
        conditions = [
            (AccountModel.username == username) | (AccountModel.employee_code == username)
        ]
        if exclude_account_id is not None:
            conditions.append(AccountModel.id != exclude_account_id)
        return await self._exists(and_(*conditions))

    async def _exists(self, condition) -> bool:
        result = await self.session.execute(
            select(func.count()).select_from(AccountModel).where(condition)
        )
        return result.scalar_one() > 0

    async def count_by_state(self) -> AccountStats:
        """Count accounts per derived state."""
        result = await self.session.execute(
            select(
                AccountModel.registration_pending,
                AccountModel.enabled,
                AccountModel.active,
                AccountModel.account_locked,
                func.count(),
            ).group_by(
                AccountModel.registration_pending,
                AccountModel.enabled,
                AccountModel.active,
                AccountModel.account_locked,
            )
        )
        counts = {state: 0 for state in AccountState}
        for pending, enabled, active, locked, count in result.all():
            status = AccountStatus(
                registration_pending=bool(pending),
                enabled=bool(enabled),
                active=bool(active),
                account_locked=bool(locked),
            )
            counts[status.state] += count
        return AccountStats(
            pending_registration=counts[AccountState.PENDING_REGISTRATION],
            pending_activation=counts[AccountState.PENDING_ACTIVATION],
            active=counts[AccountState.ACTIVE],
            disabled=counts[AccountState.DISABLED],
            locked=counts[AccountState.LOCKED],
        )
