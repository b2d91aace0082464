"""Async database handle, session scoping and transactions.

One ``Database`` is built at process start and handed to every repository.
It owns the engine (and therefore the shared connection pool). Sessions are
opened per operation and released on every exit path; inside an explicit
``transaction()`` scope all operations of the current task share one
session and commit or roll back together.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from keystone.core.constants import DEFAULT_DATABASE_TIMEOUT_SECONDS


logger = structlog.get_logger()


class Database:
    """Engine, session factory and transaction scope for the backing store.

    Usage:
        database = Database(settings.async_database_url)
        async with database.transaction():
            await users.create({...})
            await roles.assign_role(user_id, "user")
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int | None = None,
        max_overflow: int | None = None,
        echo: bool = False,
        timeout: float = DEFAULT_DATABASE_TIMEOUT_SECONDS,
        **engine_options: Any,
    ) -> None:
        options: dict[str, Any] = {
            "echo": echo,
            "pool_pre_ping": True,  # Verify connections before use
            **engine_options,
        }
        # SQLite (tests) uses a pool without size knobs
        if not url.startswith("sqlite"):
            if pool_size is not None:
                options["pool_size"] = pool_size
            if max_overflow is not None:
                options["max_overflow"] = max_overflow

        self.url = url
        self.timeout = timeout
        self.engine: AsyncEngine = create_async_engine(url, **options)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._current: ContextVar[AsyncSession | None] = ContextVar(
            f"keystone_session_{id(self)}", default=None
        )

    @property
    def in_transaction(self) -> bool:
        """Whether the current task is inside a ``transaction()`` scope."""
        return self._current.get() is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Run a block atomically.

        Nested scopes join the outermost one; only the outermost commits.
        Any exception escaping the block rolls back every write made in it.
        """
        current = self._current.get()
        if current is not None:
            yield current
            return

        async with self.session_factory() as session:
            token = self._current.set(session)
            try:
                async with session.begin():
                    yield session
            except Exception:
                logger.info("transaction_rolled_back")
                raise
            finally:
                self._current.reset(token)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session for a single operation.

        Joins the ambient transaction when there is one, otherwise opens a
        short-lived session that commits on success and is closed on exit.
        """
        current = self._current.get()
        if current is not None:
            yield current
            return

        async with self.session_factory() as session, session.begin():
            yield session

    async def ping(self) -> None:
        """Round-trip to the store; raises on failure."""
        async with self.session() as session:
            await session.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
