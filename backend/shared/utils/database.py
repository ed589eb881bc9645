"""
Async PostgreSQL access for the worker (SQLAlchemy 2.0 + asyncpg).

Sessions come in two flavours: `read_session` never commits, `write_session`
is one transaction that commits on exit and rolls back on any exception,
cancellation included, so an abandoned match write leaves nothing behind.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.models.orm import Base
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for create_async_engine."""
    return {
        "pool_size": settings.db_pool_min,
        "max_overflow": max(0, settings.db_pool_max - settings.db_pool_min),
        "pool_pre_ping": True,
        "echo": settings.debug,
        "connect_args": {
            "timeout": settings.db_command_timeout,
            "command_timeout": settings.db_command_timeout,
            "server_settings": {"application_name": f"otr-worker-{settings.instance_id or 'local'}"},
        },
    }


class DatabaseManager:
    """Owns the async engine and the session factory."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def connect(self) -> None:
        """Create the engine and check that Postgres answers."""
        self._engine = create_async_engine(self._settings.database_url_str, **engine_options(self._settings))
        self._session_factory = async_sessionmaker(bind=self._engine, expire_on_commit=False)
        try:
            await self.ping()
        except Exception:
            await self.disconnect()
            raise
        logger.info("database_connected", url=self._settings.database_url_safe_log)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("database_disconnected")

    async def create_schema(self) -> None:
        """Create missing tables. For development databases; existing tables are untouched."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ensured", tables=sorted(Base.metadata.tables))

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("DatabaseManager not connected.")
        return self._engine

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not connected.")
        return self._session_factory

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        async with self._factory()() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        async with self._factory()() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise
