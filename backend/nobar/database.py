"""Async database engine cache and session management."""

import logging
import time
from typing import AsyncIterator, Callable, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


class ConnectionCache:
    """A single lazily-created engine, reconnected when its health check fails.

    The health check (``SELECT 1``) runs at most once per ``health_interval``
    seconds as measured by ``clock``. ``get()`` returns None when no database
    URL is configured.
    """

    def __init__(
        self,
        url: Optional[str],
        health_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        echo: bool = False,
    ):
        self.url = url
        self.health_interval = health_interval
        self._clock = clock
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None
        self._checked_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def _connect(self) -> AsyncEngine:
        kwargs: dict = {"echo": self._echo, "pool_pre_ping": True}
        if not self.url.startswith("sqlite"):
            kwargs.update(pool_size=10, max_overflow=20)
        engine = create_async_engine(self.url, **kwargs)
        self._sessionmaker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._checked_at = self._clock()
        return engine

    async def _healthy(self, engine: AsyncEngine) -> bool:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    async def get(self) -> Optional[AsyncEngine]:
        if not self.configured:
            return None
        if self._engine is None:
            self._engine = self._connect()
            return self._engine

        now = self._clock()
        if now - self._checked_at >= self.health_interval:
            if await self._healthy(self._engine):
                self._checked_at = now
            else:
                await self.invalidate()
                self._engine = self._connect()
        return self._engine

    async def session(self) -> Optional[AsyncSession]:
        """Open a new session on the cached engine, or None without a database."""
        if await self.get() is None:
            return None
        return self._sessionmaker()

    async def invalidate(self) -> None:
        """Dispose the cached engine; the next ``get()`` reconnects."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None


async def init_db(connections: ConnectionCache) -> None:
    """Create all tables. In production, use migrations instead."""
    import nobar.models  # noqa: F401  (register tables on Base.metadata)

    engine = await connections.get()
    if engine is None:
        return
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncIterator[Optional[AsyncSession]]:
    """FastAPI dependency — yields an async DB session, or None without a database."""
    session = await request.app.state.connections.session()
    if session is None:
        yield None
        return
    async with session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
