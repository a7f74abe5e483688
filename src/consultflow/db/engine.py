"""Async engine for the consultation tables."""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from consultflow.core.config import DatabaseConfig


class DatabaseManager:
    """Owns the engine and session factory behind :class:`SqlConsultationRepository`.

    SQLite (``sqlite+aiosqlite://``) is used for tests and single-node setups,
    where the schema is created with :meth:`create_all`. Postgres deployments
    get a pooled engine and are migrated with Alembic.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 5,
    ) -> None:
        self._url = make_url(database_url)
        options: dict[str, Any] = {"echo": echo}
        if not self.is_sqlite:
            options.update(pool_size=pool_size, pool_pre_ping=True)
        self._engine: AsyncEngine = create_async_engine(self._url, **options)
        self._sessions: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> DatabaseManager:
        return cls(config.url, echo=config.echo, pool_size=config.pool_size)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def is_sqlite(self) -> bool:
        return self._url.get_backend_name() == "sqlite"

    def session(self) -> AsyncSession:
        # Rows stay readable after commit; repositories convert them to models outside the session.
        return self._sessions()

    async def create_all(self) -> None:
        """Create the consultation and draft tables if they are missing."""
        from consultflow.db.base import Base
        import consultflow.db.models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()
