"""Async SQLAlchemy engine/session helpers for the workspace.

Usage
-----
from db.client import Database

database = Database.from_url("sqlite+aiosqlite:///catalog.db")
async with database.session_scope() as s:
    await s.execute(...)
await database.dispose()

There are no module-level engine singletons: entry points build one
``Database`` at startup, hand it to whatever needs sessions, and dispose it
at shutdown.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models.ledger import Base


def database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


class Database:
    """Own one async engine and its session factory."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._session_maker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_url(cls, url: str | None = None, *, echo: bool = False) -> Database:
        resolved = database_url(url)
        engine = create_async_engine(resolved, echo=echo, pool_pre_ping=True)
        if engine.dialect.name == "sqlite":
            _enable_sqlite_foreign_keys(engine)
        return cls(engine)

    def session(self) -> AsyncSession:
        """Return a new session bound to this database's engine."""

        return self._session_maker()

    @asynccontextmanager
    async def session_scope(self) -> AsyncIterator[AsyncSession]:
        """Provide a transactional scope around a series of operations."""

        session = self.session()
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """Create any missing catalog tables (local/dev and tests)."""

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


__all__ = [
    "Database",
    "database_url",
]
