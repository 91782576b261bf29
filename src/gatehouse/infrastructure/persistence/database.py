"""Database layer using SQLAlchemy 2.0 async.

Provides the declarative base, the engine/session manager and the FastAPI
session dependency. SQLite (aiosqlite) is the default driver.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from gatehouse.core.config import Settings, get_settings
from gatehouse.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class DatabaseManager:
    """Owns the async engine and the session factory."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the database engine."""
        if self._engine is None:
            url = self.settings.database_url
            if url.startswith("sqlite"):
                kwargs: dict = {"connect_args": {"check_same_thread": False}}
            else:
                kwargs = {
                    "pool_size": self.settings.db_pool_size,
                    "max_overflow": self.settings.db_max_overflow,
                }
            self._engine = create_async_engine(url, echo=self.settings.db_echo, **kwargs)
            logger.info(
                "Database engine created",
                database_url=self._engine.url.render_as_string(hide_password=True),
            )
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create the session factory."""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_factory

    async def create_tables(self) -> None:
        """Create all tables registered on ``Base.metadata``."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database engine disposed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a session that is rolled back if the block raises."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def check_connection(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database connection check failed", error=str(e))
            return False


_db_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    """Get the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session."""
    async with get_db_manager().session() as session:
        yield session


async def seed_roles(session: AsyncSession) -> None:
    """Insert every known role that is not stored yet."""
    from gatehouse.domain.entities import RoleName
    from gatehouse.infrastructure.persistence.models import RoleModel

    result = await session.execute(select(RoleModel.name))
    existing = set(result.scalars().all())
    for role in RoleName:
        if role.value not in existing:
            session.add(RoleModel(name=role.value))
            logger.info("Seeded role", role_name=role.value)
    await session.commit()


async def init_database(db: DatabaseManager | None = None) -> None:
    """Create tables, seed roles and the bootstrap administrator."""
    from gatehouse.infrastructure.persistence import models  # noqa: F401

    db = db or get_db_manager()
    settings = db.settings

    if settings.database_url.startswith("sqlite") and ":memory:" not in settings.database_url:
        db_path = Path(settings.database_url.split(":///")[-1])
        db_path.parent.mkdir(parents=True, exist_ok=True)

    if not await db.check_connection():
        raise RuntimeError("Failed to connect to database")

    await db.create_tables()
    async with db.session() as session:
        await seed_roles(session)

    if settings.admin_email and settings.admin_password:
        from gatehouse.domain.services.account_lifecycle import ensure_administrator

        async with db.session() as session:
            await ensure_administrator(session, settings.admin_email, settings.admin_password)


async def close_database() -> None:
    await get_db_manager().disconnect()
