import logging
import time
from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


class DatabaseHealth:
    """Tracks whether the primary database is reachable.

    While the database is marked down, ``is_available`` re-probes it at most
    once per ``probe_interval`` seconds so the service can leave degraded
    mode without a restart.
    """

    def __init__(self, engine: AsyncEngine, probe_interval: float = 15.0) -> None:
        self.engine = engine
        self.probe_interval = probe_interval
        self.available = False
        self._last_probe: float | None = None

    async def probe(self) -> bool:
        self._last_probe = time.monotonic()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            if self.available:
                logger.warning("Database probe failed", extra={"error": str(exc)})
            self.available = False
        else:
            if not self.available:
                logger.info("Database reachable")
            self.available = True
        return self.available

    async def is_available(self) -> bool:
        if self.available:
            return True
        if self._last_probe is None or time.monotonic() - self._last_probe >= self.probe_interval:
            return await self.probe()
        return False

    def mark_down(self, reason: str) -> None:
        if self.available:
            logger.warning("Database marked unavailable", extra={"reason": reason})
        self.available = False
        self._last_probe = time.monotonic()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.session_factory() as session:
        yield session
