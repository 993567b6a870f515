"""
Async engine and per-request session.

Sessions are created per request by `get_db`. Services commit explicitly at
each workflow step; whatever is left pending when the handler returns is
committed here, and everything is rolled back if the handler raised.
"""

from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backoffice.core.config import get_settings

settings = get_settings()


def build_engine(url: str, **overrides):
    kwargs = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if make_url(url).get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    kwargs.update(overrides)
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
